"""Reading and writing ShareAudit result files."""

import csv
import json
from pathlib import Path
from typing import Any, Dict, Union

from .errors import PlanError
from .logging import get_logger
from .models.remediation import RemediationPlan, RemediationReport
from .models.scans import ScanResult

logger = get_logger(__name__)

PathLike = Union[str, Path]

CSV_COLUMNS = [
    'siteName', 'siteId', 'driveId', 'itemId', 'itemName', 'itemPath',
    'permissionId', 'linkScope', 'linkType', 'grantedTo', 'expiresOn',
    'hasPassword', 'roles', 'classificationReason', 'scanTimestamp',
]


def _write_json(path: PathLike, data: Dict[str, Any]) -> Path:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    with open(target, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2)
    return target


def write_scan_result(result: ScanResult, path: PathLike) -> Path:
    target = _write_json(path, result.to_dict())
    logger.info("Scan result written", path=str(target), findings=len(result.findings))
    return target


def write_findings_csv(result: ScanResult, path: PathLike) -> Path:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    with open(target, 'w', encoding='utf-8', newline='') as f:
        writer = csv.DictWriter(f, fieldnames=CSV_COLUMNS, extrasaction='ignore')
        writer.writeheader()
        for finding in result.findings:
            row = finding.to_dict()
            row['roles'] = ';'.join(row['roles'])
            writer.writerow(row)
    logger.info("Findings CSV written", path=str(target), rows=len(result.findings))
    return target


def write_plan(plan: RemediationPlan, path: PathLike) -> Path:
    target = _write_json(path, plan.to_dict())
    logger.info("Remediation plan written", path=str(target), items=plan.total_items)
    return target


def write_remediation_report(report: RemediationReport, path: PathLike) -> Path:
    target = _write_json(path, report.to_dict())
    logger.info("Remediation report written", path=str(target))
    return target


def load_plan(path: PathLike) -> RemediationPlan:
    """Load a plan file, or derive a plan from a scan output file.

    Raises PlanError when the file is missing, unreadable or has no items.
    """
    source = Path(path)
    try:
        with open(source, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise PlanError(f"Plan file not found: {source}") from e
    except (OSError, ValueError) as e:
        raise PlanError(f"Plan file is unreadable: {source}: {e}") from e

    if not isinstance(data, dict):
        raise PlanError(f"Plan file has an unexpected shape: {source}")

    try:
        if 'items' in data:
            plan = RemediationPlan.from_dict(data)
        elif 'results' in data:
            plan = RemediationPlan.from_scan_result(ScanResult.from_dict(data))
        else:
            raise PlanError(f"Plan file has neither 'items' nor 'results': {source}")
    except (ValueError, TypeError) as e:
        raise PlanError(f"Plan file is malformed: {source}: {e}") from e

    if not plan.items:
        raise PlanError(f"Plan file contains no items: {source}")

    logger.info("Remediation plan loaded", path=str(source), items=plan.total_items)
    return plan
