"""
Lead CSV export.

Flattens leads into one row each and writes them as CSV with pandas. List
and nested fields are encoded as JSON inside their cell. Quoting is minimal
but complete, so any field containing commas, quotes or newlines is read
back as the identical string.

Usage:
    text = export_leads_csv(leads)
    rows = parse_leads_csv(text)
"""

import io
import json
from typing import Dict, List, Sequence

import pandas as pd

from guardforce.models.schemas import Lead


EXPORT_COLUMNS: List[str] = [
    'id',
    'firstName',
    'lastName',
    'email',
    'phone',
    'sourceType',
    'status',
    'applicationStatus',
    'assignedRecruiter',
    'yearsExperience',
    'hasSecurityExperience',
    'hasLicense',
    'transportationAvailable',
    'willingToRelocate',
    'salaryExpectations',
    'certifications',
    'preferredLocations',
    'qualificationScore',
    'applicationCompletionProbability',
    'notes',
    'createdAt',
]

JSON_COLUMNS = ('certifications', 'preferredLocations')


def _lead_row(lead: Lead) -> Dict[str, object]:
    data = lead.model_dump(mode='json')
    row = {column: data.get(column) for column in EXPORT_COLUMNS}
    for column in JSON_COLUMNS:
        row[column] = json.dumps(row[column] or [])
    return row


def export_leads_csv(leads: Sequence[Lead]) -> str:
    """
    Serialize leads to CSV text with a header row.

    Missing values are written as empty cells.
    """
    frame = pd.DataFrame([_lead_row(lead) for lead in leads], columns=EXPORT_COLUMNS)
    return frame.to_csv(index=False)


def parse_leads_csv(text: str) -> List[Dict[str, str]]:
    """
    Read exported CSV back into one dict per row.

    Every cell comes back as the exact string that was written; empty cells
    come back as empty strings.
    """
    frame = pd.read_csv(
        io.StringIO(text),
        dtype=str,
        keep_default_na=False,
        na_filter=False,
    )
    return frame.to_dict(orient='records')
