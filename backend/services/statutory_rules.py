"""
Statutory Rule Resolver

Selects the statutory rule set in force for a company on a date and merges
its entries onto the built-in defaults.

Selection order:
1. Latest company-scoped set effective on the date
2. Latest global set (no company) effective on the date
3. Built-in defaults, reported as version ``fallback-default``
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.config import get_settings
from backend.models.statutory_rule import StatutoryRuleEntry, StatutoryRuleSet
from backend.services import cache
from engines.schemas.payroll import RuleConfig
from engines.services.rule_overrides import resolve_rule_config_with_report
from engines.services.statutory import DEFAULT_RULE_CONFIG

logger = logging.getLogger(__name__)

FALLBACK_VERSION = "fallback-default"


@dataclass(frozen=True)
class LoadedPayrollRules:
    """Resolved rules plus the rule set they came from (None for the fallback)."""

    rule_set_id: UUID | None
    version: str
    config: RuleConfig

    @property
    def is_fallback(self) -> bool:
        return self.rule_set_id is None

    def to_cache(self) -> dict[str, Any]:
        return {
            "rule_set_id": str(self.rule_set_id) if self.rule_set_id else None,
            "version": self.version,
            "config": self.config.model_dump(mode="json"),
        }

    @classmethod
    def from_cache(cls, data: dict[str, Any]) -> "LoadedPayrollRules":
        return cls(
            rule_set_id=UUID(data["rule_set_id"]) if data.get("rule_set_id") else None,
            version=data["version"],
            config=RuleConfig.model_validate(data["config"]),
        )


async def _find_rule_set(
    db: AsyncSession,
    company_id: UUID | None,
    as_of: date,
    jurisdiction: str,
) -> StatutoryRuleSet | None:
    settings = get_settings()
    scope = (
        StatutoryRuleSet.company_id == company_id
        if company_id is not None
        else StatutoryRuleSet.company_id.is_(None)
    )
    result = await db.execute(
        select(StatutoryRuleSet)
        .where(
            scope,
            StatutoryRuleSet.country_code == settings.statutory_country_code,
            StatutoryRuleSet.jurisdiction == jurisdiction,
            StatutoryRuleSet.rule_code == settings.statutory_rule_code,
            StatutoryRuleSet.effective_from <= as_of,
            or_(
                StatutoryRuleSet.effective_to.is_(None),
                StatutoryRuleSet.effective_to >= as_of,
            ),
        )
        .order_by(StatutoryRuleSet.effective_from.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def _load_entry_map(db: AsyncSession, rule_set_id: UUID) -> dict[str, Any]:
    result = await db.execute(
        select(StatutoryRuleEntry.key, StatutoryRuleEntry.value).where(
            StatutoryRuleEntry.rule_set_id == rule_set_id
        )
    )
    return {key: value for key, value in result.all()}


async def load_active_payroll_rules(
    db: AsyncSession,
    company_id: UUID,
    as_of: date,
    jurisdiction: str | None = None,
) -> LoadedPayrollRules:
    """
    Resolve the payroll RuleConfig for ``company_id`` on ``as_of``.

    Read-only. Malformed override entries keep the default for that field
    and are logged; a missing rule set falls back to the built-in defaults.
    Database errors propagate.
    """
    settings = get_settings()
    jurisdiction = jurisdiction or settings.default_jurisdiction

    cache_key = cache.rules_key(str(company_id), jurisdiction, as_of.isoformat())
    if settings.rules_cache_ttl_seconds > 0:
        cached = await cache.get_cached(cache_key)
        if cached:
            return LoadedPayrollRules.from_cache(cached)

    rule_set = await _find_rule_set(db, company_id, as_of, jurisdiction)
    if rule_set is None:
        rule_set = await _find_rule_set(db, None, as_of, jurisdiction)

    if rule_set is None:
        logger.warning(
            "No statutory rule set for company %s (%s) on %s; using built-in defaults",
            company_id,
            jurisdiction,
            as_of,
        )
        loaded = LoadedPayrollRules(rule_set_id=None, version=FALLBACK_VERSION, config=DEFAULT_RULE_CONFIG)
    else:
        entry_map = await _load_entry_map(db, rule_set.id)
        config, rejected = resolve_rule_config_with_report(entry_map)
        for note in rejected:
            logger.warning("Ignoring statutory override in rule set %s: %s", rule_set.id, note)
        loaded = LoadedPayrollRules(rule_set_id=rule_set.id, version=rule_set.version, config=config)

    if settings.rules_cache_ttl_seconds > 0:
        await cache.set_cached(cache_key, loaded.to_cache(), ttl=settings.rules_cache_ttl_seconds)

    return loaded


async def invalidate_payroll_rules(company_id: UUID | None = None) -> int:
    """
    Drop cached resolutions after a rule set is written.

    Pass the company for a company-scoped set. A global set feeds every
    company without its own set, so ``None`` clears all of them. Returns the
    number of cache entries removed.
    """
    pattern = cache.rules_pattern(str(company_id) if company_id else None)
    removed = await cache.invalidate_pattern(pattern)
    logger.info("Invalidated %d cached rule resolutions (%s)", removed, pattern)
    return removed
