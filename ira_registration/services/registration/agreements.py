"""
Agreement records for step 9.

The required documents come from the progress service; prior acceptance is
carried over by document name so a reordered or re-fetched list never
shifts an acceptance onto the wrong document.
"""

from datetime import datetime, timezone
from typing import Iterable, List, Optional

from ira_registration.domain.schemas import AgreementRecord, DocumentRef


def build_agreements(
    documents: Iterable[DocumentRef],
    existing: Optional[Iterable[AgreementRecord]] = None,
) -> List[AgreementRecord]:
    """
    One record per required document, keeping earlier acceptance.

    With no documents available (not fetched yet, or the fetch failed) the
    existing records are returned unchanged.
    """
    documents = list(documents)
    by_name = {record.document_name: record for record in (existing or [])}

    if not documents:
        return list(by_name.values())

    records = []
    for doc in documents:
        previous = by_name.get(doc.name)
        records.append(
            AgreementRecord(
                document_name=doc.name,
                document_url=doc.url,
                accepted=previous.accepted if previous else False,
                accepted_at=previous.accepted_at if previous else None,
            )
        )
    return records


def set_acceptance(
    records: Iterable[AgreementRecord],
    document_name: str,
    accepted: bool,
    now: Optional[datetime] = None,
) -> List[AgreementRecord]:
    """Toggle one document; acceptance stamps accepted_at, withdrawal clears it."""
    stamp = (now or datetime.now(timezone.utc)) if accepted else None
    updated = []
    for record in records:
        if record.document_name == document_name:
            record = record.model_copy(update={"accepted": accepted, "accepted_at": stamp})
        updated.append(record)
    return updated
