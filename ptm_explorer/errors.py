"""Error taxonomy shared by the upload pipeline, the query layer and the UniProt gateway."""

from typing import Sequence


class PtmExplorerError(Exception):
    """Base class for every condition this package reports."""


class StructuralValidationError(PtmExplorerError):
    """The uploaded file cannot be ingested at all (bad encoding, no header, ...)."""


class MissingColumns(StructuralValidationError):
    def __init__(self, missing: Sequence[str]):
        self.missing = list(missing)
        super().__init__(f"Missing required columns: {', '.join(self.missing)}")


class RowValidationError(PtmExplorerError):
    """A single data row failed validation. Collected, never fatal to the batch."""

    def __init__(self, row: int, message: str):
        self.row = row
        self.message = message
        super().__init__(f"Row {row}: {message}")

    def to_dict(self) -> dict:
        return {"row": self.row, "error": self.message}


class PositionOutOfRange(PtmExplorerError):
    def __init__(self, position: int, sequence_length: int):
        self.position = position
        self.sequence_length = sequence_length
        super().__init__(
            f"Position {position} is outside the sequence (length {sequence_length})"
        )


class ExternalFetchFailure(PtmExplorerError):
    def __init__(self, source: str, accession: str, reason: str):
        self.source = source
        self.accession = accession
        self.reason = reason
        super().__init__(f"{source} fetch failed for {accession}: {reason}")


class SessionNotFound(PtmExplorerError):
    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session {session_id} not found")


class ProteinNotFound(PtmExplorerError):
    def __init__(self, uniprot_id: str, session_id: str):
        self.uniprot_id = uniprot_id
        self.session_id = session_id
        super().__init__(f"Protein {uniprot_id} not found in session {session_id}")
