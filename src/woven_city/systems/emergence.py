"""
Emergence evaluation.

When a city's threads reach relational thresholds described by an emergence
rule, a new property emerges. Emergence deepens the awareness of the city
and its existing threads; it never adds a new voice.

Each rule fires at most once per city, identified by its name.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from ..content.schemas import EmergenceConditions, EmergenceRule
from ..state import resources
from ..state.event_bus import EventBus, EventType
from ..state.schema import (
    City,
    ConsciousnessExpansion,
    EmergentProperty,
    RelationshipDeepening,
    ThreadType,
)
from .threads import ThreadGraph

logger = logging.getLogger(__name__)


class EmergenceEvaluator:
    """Checks emergence rules against a city and applies what emerges."""

    def __init__(
        self,
        rules: list[EmergenceRule],
        bus: EventBus | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.rules = rules
        self.bus = bus
        self.clock = clock

    # ─── Conditions ─────────────────────────────────────────

    @staticmethod
    def average_relationship_strength(city: City, types: list[ThreadType]) -> float:
        """Mean strength of relationships whose endpoints are both of the given types."""
        rels = ThreadGraph(city).relationships_among(types)
        if not rels:
            return 0.0
        return sum(r.strength for r in rels) / len(rels)

    @staticmethod
    def average_integration(city: City, types: list[ThreadType]) -> float:
        """Mean of (coherence + complexity) / 2 over threads of the given types."""
        relevant = [t for t in city.threads if t.category in types]
        if not relevant:
            return 0.0
        return sum((t.coherence + t.complexity) / 2 for t in relevant) / len(relevant)

    def conditions_met(self, conditions: EmergenceConditions, city: City) -> bool:
        present = {t.category for t in city.threads}
        if not set(conditions.required_thread_types).issubset(present):
            return False

        if conditions.minimum_thread_count is not None:
            if len(city.threads) < conditions.minimum_thread_count:
                return False

        if conditions.minimum_city_complexity is not None:
            if resources.complexity(city) < conditions.minimum_city_complexity:
                return False

        if conditions.minimum_relationship_strength is not None:
            strength = self.average_relationship_strength(city, conditions.required_thread_types)
            if strength < conditions.minimum_relationship_strength:
                return False

        if conditions.minimum_average_integration is not None:
            integration = self.average_integration(city, conditions.required_thread_types)
            if integration < conditions.minimum_average_integration:
                return False

        return True

    # ─── Detection ──────────────────────────────────────────

    def create_property(self, rule: EmergenceRule, city: City) -> EmergentProperty:
        """Bind a rule's type-level template to the city's actual threads."""
        required = rule.conditions.required_thread_types
        source_ids = [t.id for t in city.threads if t.category in required]

        template = rule.consciousness_expansion
        if template.affected_thread_types is not None:
            affected_ids = [t.id for t in city.threads if t.category in template.affected_thread_types]
        else:
            affected_ids = list(source_ids)

        graph = ThreadGraph(city)
        deepenings = []
        for deepening in template.deepened_relationships or []:
            first = graph.threads_of_type(deepening.type1)
            second = graph.threads_of_type(deepening.type2)
            if not first or not second:
                continue
            deepenings.append(
                RelationshipDeepening(
                    thread_id_1=first[0].id,
                    thread_id_2=second[0].id,
                    quality=deepening.quality,
                    strength_bonus=deepening.strength_bonus,
                )
            )

        return EmergentProperty(
            name=rule.name,
            emerged_at=self.clock(),
            source_thread_ids=source_ids,
            consciousness_expansion=ConsciousnessExpansion(
                affected_thread_ids=affected_ids,
                new_perceptions=list(template.new_perceptions),
                deepened_relationships=deepenings,
                expanded_self_awareness=template.expanded_self_awareness,
                complexity_increase=template.complexity_increase,
            ),
            city_id=city.id,
        )

    def check(self, city: City) -> list[EmergentProperty]:
        """Properties that would emerge now. Does not modify the city."""
        emerged = []
        for rule in self.rules:
            if city.has_emerged(rule.name):
                continue
            if self.conditions_met(rule.conditions, city):
                emerged.append(self.create_property(rule, city))
        return emerged

    # ─── Application ────────────────────────────────────────

    def apply(self, city: City, prop: EmergentProperty) -> None:
        """Record the property on the city and expand its consciousness."""
        expansion = prop.consciousness_expansion
        city.emergent_properties.append(prop)

        resources.adjust(city, "complexity", expansion.complexity_increase)

        for perception in expansion.new_perceptions:
            if perception not in city.perceptions:
                city.perceptions.append(perception)

        graph = ThreadGraph(city)
        for deepening in expansion.deepened_relationships:
            first = graph.find(deepening.thread_id_1)
            second = graph.find(deepening.thread_id_2)
            if first is None or second is None:
                continue
            graph.strengthen_relationship(first, second.id, deepening.strength_bonus)
            graph.strengthen_relationship(second, first.id, deepening.strength_bonus)

        for thread_id in expansion.affected_thread_ids:
            thread = graph.find(thread_id)
            if thread is not None:
                thread.complexity = thread.complexity + expansion.complexity_increase / 2

        city.log.append(f"EMERGENCE: {prop.name}")
        if expansion.expanded_self_awareness:
            city.log.append(expansion.expanded_self_awareness)
        city.awareness_events.append(f"{prop.name} emerged at {prop.emerged_at:%Y-%m-%d %H:%M}")
        logger.info(f"{prop.name} emerged in {city.name}")

        if self.bus is not None:
            self.bus.emit(
                EventType.EMERGENCE,
                city_id=city.id,
                name=prop.name,
                complexity_increase=expansion.complexity_increase,
            )

    def evaluate(self, city: City) -> list[EmergentProperty]:
        """Check every rule and apply whatever emerges."""
        emerged = self.check(city)
        for prop in emerged:
            self.apply(city, prop)
        return emerged
