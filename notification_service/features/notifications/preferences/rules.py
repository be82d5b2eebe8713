"""Override rules flattened from a preference document.

Template, category and type entries are turned into an ordered list of
``OverrideRule`` values. Evaluation is a linear scan: the first rule that
applies to the channel decides. The list always ends with the recipient's
global flag for the channel, so a decision is always reached.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from notification_service.features.notifications.preferences.schemas import (
        NamedOverride,
        PreferenceDocument,
    )


class OverrideScope(StrEnum):
    """Preference layer a rule came from, most specific first."""

    TEMPLATE = "template"
    CATEGORY_PRIORITY = "category_priority"
    CATEGORY = "category"
    TYPE = "type"
    CHANNEL_DEFAULT = "channel_default"


@dataclass(frozen=True, slots=True)
class OverrideRule:
    """One precedence step.

    ``channel=None`` means the rule applies to every channel (an entry that
    is switched off entirely).
    """

    scope: OverrideScope
    enabled: bool
    channel: str | None = None

    def applies_to(self, channel: str) -> bool:
        return self.channel is None or self.channel == channel


def _named_rules(
    scope: OverrideScope,
    entry: NamedOverride | None,
    channel: str,
) -> list[OverrideRule]:
    if entry is None:
        return []
    if entry.enabled is False:
        return [OverrideRule(scope, False)]
    override = entry.channel_overrides.get(channel)
    if override is not None and override.enabled is not None:
        return [OverrideRule(scope, override.enabled, channel)]
    return []


def build_override_rules(
    pref: PreferenceDocument,
    category: str | None,
    notification_type: str | None,
    channel: str,
    priority: str = "normal",
    template: str | None = None,
) -> list[OverrideRule]:
    """Flatten the matching preference entries into precedence order.

    Order: template, category priority override, category, type, and finally
    the global channel flag. A channel without a preference section defaults
    to disabled.
    """
    rules: list[OverrideRule] = []

    rules.extend(_named_rules(OverrideScope.TEMPLATE, pref.find_template(template), channel))

    category_pref = pref.find_category(category) if category else None
    if category_pref is not None:
        if category_pref.enabled is False:
            rules.append(OverrideRule(OverrideScope.CATEGORY, False))
        else:
            priority_override = category_pref.priority_overrides.get(priority)
            if priority_override is not None:
                if priority_override.enabled is False:
                    rules.append(OverrideRule(OverrideScope.CATEGORY_PRIORITY, False))
                elif channel in priority_override.channels:
                    rules.append(
                        OverrideRule(
                            OverrideScope.CATEGORY_PRIORITY,
                            priority_override.channels[channel],
                            channel,
                        )
                    )
            rules.extend(_named_rules(OverrideScope.CATEGORY, category_pref, channel))

    type_pref = pref.find_type(notification_type) if notification_type else None
    rules.extend(_named_rules(OverrideScope.TYPE, type_pref, channel))

    section = pref.channels.for_channel(channel)
    rules.append(
        OverrideRule(OverrideScope.CHANNEL_DEFAULT, bool(section and section.enabled), channel)
    )
    return rules


def evaluate_rules(rules: Iterable[OverrideRule], channel: str) -> OverrideRule:
    """Return the first rule that applies to ``channel``.

    Raises:
        ValueError: If no rule applies (the list lacks its global terminator).
    """
    for rule in rules:
        if rule.applies_to(channel):
            return rule
    msg = f"No override rule applies to channel {channel!r}"
    raise ValueError(msg)


__all__ = ["OverrideRule", "OverrideScope", "build_override_rules", "evaluate_rules"]
