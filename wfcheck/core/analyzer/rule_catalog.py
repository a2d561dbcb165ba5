"""
Default Rule Catalog — 23 rules across 5 categories
=====================================================
Built once per process and never mutated. Rules disabled via the
DISABLED_RULES setting are dropped at build time.
"""

import logging
from functools import lru_cache
from typing import Iterable, Optional

from . import (
    rules_evaluation, rules_leakage, rules_reproducibility, rules_resampling, rules_workflow,
)
from .rule_base import RuleCatalog

logger = logging.getLogger(__name__)

RULE_MODULES = (
    rules_leakage,
    rules_resampling,
    rules_workflow,
    rules_evaluation,
    rules_reproducibility,
)


def build_catalog(disabled: Optional[Iterable[str]] = None) -> RuleCatalog:
    catalog = RuleCatalog([r for module in RULE_MODULES for r in module.RULES])
    disabled = list(disabled or ())
    if disabled:
        catalog = catalog.without(disabled)
        logger.info(f"Rule catalog: disabled {', '.join(sorted(disabled))}")
    return catalog


@lru_cache(maxsize=1)
def get_default_catalog() -> RuleCatalog:
    """Process-wide catalog honouring DISABLED_RULES."""
    from wfcheck.config import settings
    catalog = build_catalog(settings.DISABLED_RULES)
    logger.info(f"Rule catalog loaded: {len(catalog)} rules")
    return catalog
