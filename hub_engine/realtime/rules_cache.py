"""Client-side filter rules cache with version drift detection.

Minor and patch version differences are applied silently. A differing major
version keeps the last-known rules in force and raises the ``rules_outdated``
flag for the UI until the new rules are explicitly accepted.
"""
import logging
from enum import Enum
from typing import Optional

from hub_engine.models import FilterRules, FilterRulesAdvertisement, FilterRulesRecord

logger = logging.getLogger(__name__)


class RulesDrift(str, Enum):
    NONE = "none"
    MINOR = "minor"
    MAJOR = "major"


def major_version(version: str) -> Optional[int]:
    head = version.split(".", 1)[0].strip()
    return int(head) if head.isdigit() else None


def detect_drift(cached_version: str, advertised_version: str) -> RulesDrift:
    """Compare two semantic versions by their first dot-separated component.

    An unparseable major component counts as a major difference.
    """
    if cached_version == advertised_version:
        return RulesDrift.NONE

    cached_major = major_version(cached_version)
    advertised_major = major_version(advertised_version)
    if cached_major is None or advertised_major is None or cached_major != advertised_major:
        return RulesDrift.MAJOR
    return RulesDrift.MINOR


class FilterRulesCache:
    def __init__(self, hub_id: str, record: Optional[FilterRulesRecord] = None):
        self.record = record or FilterRulesRecord(hub_id=hub_id)
        self.rules_outdated = False
        self.pending_version: Optional[str] = None

    @property
    def version(self) -> str:
        return self.record.version

    @property
    def rules(self) -> FilterRules:
        return self.record.rules

    def update(self, record: FilterRulesRecord) -> RulesDrift:
        """Offer newer rules to the cache, applying the drift policy."""
        drift = detect_drift(self.version, record.version)

        if drift == RulesDrift.MAJOR:
            self.rules_outdated = True
            self.pending_version = record.version
            logger.warning(
                f"[FilterRulesCache] Rules v{record.version} differ in major version from "
                f"cached v{self.version}; keeping cached rules"
            )
            return drift

        if drift == RulesDrift.MINOR:
            logger.info(f"[FilterRulesCache] Applying rules v{record.version} over v{self.version}")

        # rules_outdated is only cleared by accept()
        self.record = record
        return drift

    def observe_advertisement(self, advertisement: FilterRulesAdvertisement) -> RulesDrift:
        """Handle a server advertisement, with or without the rules body."""
        if advertisement.rules is not None:
            return self.update(
                FilterRulesRecord(
                    hub_id=self.record.hub_id,
                    version=advertisement.version,
                    rules=advertisement.rules,
                )
            )

        drift = detect_drift(self.version, advertisement.version)
        if drift == RulesDrift.MAJOR:
            self.rules_outdated = True
            self.pending_version = advertisement.version
        return drift

    def accept(self, record: FilterRulesRecord) -> None:
        """Adopt rules regardless of drift (the user accepted the update)."""
        self.record = record
        self.rules_outdated = False
        self.pending_version = None
        logger.info(f"[FilterRulesCache] Accepted rules v{record.version}")
