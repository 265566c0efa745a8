"""
Derived package views.

Pure functions over a packages snapshot. They are re-evaluated whenever the
selection or the snapshot changes and never stored.
"""

from datetime import datetime, timezone
from typing import List, Sequence

from ..schemas.database_models import Package, PackageStatus

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def available_packages(resident_id: str, packages: Sequence[Package]) -> List[Package]:
    """
    Packages waiting in storage for one resident.

    Keeps the order of ``packages`` (newest check-in first as read from the
    store).
    """
    if not resident_id:
        return []
    return [
        p for p in packages
        if p.resident_id == resident_id and p.status == PackageStatus.CHECKED_IN
    ]


def _checked_out_key(package: Package) -> datetime:
    stamp = package.checked_out_at
    if stamp is None:
        return _EPOCH
    if stamp.tzinfo is None:
        return stamp.replace(tzinfo=timezone.utc)
    return stamp


def recent_check_outs(packages: Sequence[Package], limit: int = 5) -> List[Package]:
    """Checked-out packages, most recently checked out first, capped at ``limit``."""
    checked_out = [p for p in packages if p.status == PackageStatus.CHECKED_OUT]
    checked_out.sort(key=_checked_out_key, reverse=True)
    return checked_out[:limit]
