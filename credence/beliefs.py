"""
Bayesian belief engine for per-session user preference modeling.

Maintains a fixed registry of named hypotheses about one user (language,
code style, communication style, quality expectations) and folds observed
evidence into them with Bayes' Rule:

    P(H|E) = P(E|H) * P(H) / P(E)
    P(E)   = P(E|H) * P(H) + P(E|¬H) * P(¬H),  with P(E|¬H) = 1 - P(E|H)

After every update the concrete UserPreference snapshot is recomputed from
scratch (session baseline + current probabilities) so it can never drift from
the beliefs it summarizes.

Usage:
    engine = BeliefEngine()
    engine.update_belief(
        "prefers_typescript",
        Evidence(type="code_written", content={"language": "typescript"}),
    )
    params = engine.get_response_parameters()

One engine per user/session. Nothing here is persisted; a process restart
starts again from the priors.
"""

from typing import Any, Dict, List, Mapping, Optional, Union

from .logging_utils import log_deterministic, log_warning
from .schemas import (
    Belief,
    Evidence,
    ResponseParameters,
    UserPreference,
    utc_now,
)


# key -> (hypothesis, prior)
DEFAULT_PRIORS: Dict[str, tuple[str, float]] = {
    # Language / framework: most modern projects are TS + React
    "prefers_typescript": ("User prefers TypeScript over JavaScript", 0.7),
    "prefers_react": ("User prefers React framework", 0.8),
    # Code style
    "uses_semicolons": ("User uses semicolons in code", 0.6),
    "prefers_single_quotes": ("User prefers single quotes", 0.5),
    # Communication style
    "wants_detailed_explanations": ("User wants detailed explanations", 0.5),
    "wants_code_examples": ("User wants code examples", 0.8),
    # Quality expectations
    "high_quality_expectations": ("User expects 95-99/100 quality", 0.9),
}

NEUTRAL_LIKELIHOOD = 0.5
MIN_EVIDENCE_PROBABILITY = 0.01


def bayes_rule(prior: float, likelihood: float, evidence_probability: float) -> float:
    """Posterior P(H|E), clamped to [0, 1].

    Returns the prior unchanged when the evidence is impossible (P(E) == 0).
    """
    if evidence_probability == 0:
        return prior

    posterior = (likelihood * prior) / evidence_probability
    return max(0.0, min(1.0, posterior))


def evidence_probability(prior: float, likelihood: float) -> float:
    """P(E) by the law of total probability, floored to avoid division by zero."""
    likelihood_not = 1.0 - likelihood
    total = likelihood * prior + likelihood_not * (1.0 - prior)
    return max(MIN_EVIDENCE_PROBABILITY, total)


def _payload(content: Mapping[str, Any], key: str, alias: str) -> Any:
    # Wire payloads use camelCase keys; snake_case is accepted as an alias.
    return content[key] if key in content else content.get(alias)


def calculate_likelihood(evidence: Evidence, hypothesis_key: str) -> float:
    """P(E|H): how likely this evidence is if the hypothesis holds.

    Deterministic lookup on (evidence type, hypothesis key, content). Any
    combination not listed falls back to NEUTRAL_LIKELIHOOD, which leaves the
    posterior equal to the prior.
    """
    content = evidence.content

    if evidence.type == "code_written":
        if hypothesis_key == "prefers_typescript":
            language = content.get("language")
            if language == "typescript":
                return 0.95
            if language == "javascript":
                return 0.1
        elif hypothesis_key == "uses_semicolons":
            return 0.9 if _payload(content, "hasSemicolons", "has_semicolons") else 0.1

    elif evidence.type == "user_feedback":
        if hypothesis_key == "wants_detailed_explanations":
            feedback = _payload(content, "feedbackType", "feedback_type")
            if feedback == "positive":
                return 0.85
            if feedback == "too_verbose":
                return 0.1

    elif evidence.type == "correction_made":
        if hypothesis_key == "prefers_single_quotes" and content.get("correction") == "quotes":
            return 0.9

    elif evidence.type == "question_asked":
        if hypothesis_key == "wants_detailed_explanations":
            question = content.get("question")
            if isinstance(question, str) and "why" in question.lower():
                return 0.8

    return NEUTRAL_LIKELIHOOD


def derive_preferences(
    baseline: UserPreference, probabilities: Mapping[str, float]
) -> UserPreference:
    """Build the preference snapshot from the baseline and belief probabilities.

    Thresholds:
    - preferred_language: > 0.8 typescript, < 0.3 javascript, else baseline
    - semicolons: > 0.5
    - quotation: > 0.5 single, else double
    - verbosity: > 0.7 detailed, < 0.3 concise, else balanced
    """
    prefs = baseline.model_copy(deep=True)

    prefers_ts = probabilities.get("prefers_typescript")
    if prefers_ts is not None:
        if prefers_ts > 0.8:
            prefs.preferred_language = "typescript"
        elif prefers_ts < 0.3:
            prefs.preferred_language = "javascript"

    uses_semicolons = probabilities.get("uses_semicolons")
    if uses_semicolons is not None:
        prefs.code_style.semicolons = uses_semicolons > 0.5

    single_quotes = probabilities.get("prefers_single_quotes")
    if single_quotes is not None:
        prefs.code_style.quotation = "single" if single_quotes > 0.5 else "double"

    detailed = probabilities.get("wants_detailed_explanations")
    if detailed is not None:
        if detailed > 0.7:
            prefs.communication_style.verbosity = "detailed"
        elif detailed < 0.3:
            prefs.communication_style.verbosity = "concise"
        else:
            prefs.communication_style.verbosity = "balanced"

    return prefs


def _merge_preferences(overrides: Union[Dict[str, Any], UserPreference, None]) -> UserPreference:
    if overrides is None:
        return UserPreference()
    if isinstance(overrides, UserPreference):
        return overrides.model_copy(deep=True)

    # Nested style blocks merge over their own defaults instead of replacing them.
    payload = UserPreference().model_dump()
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(payload.get(key), dict):
            payload[key] = {**payload[key], **value}
        else:
            payload[key] = value
    return UserPreference.model_validate(payload)


class BeliefEngine:
    """Per-session Bayesian belief tracker.

    Owns its belief map; construct one per user/conversation and pass it by
    reference to whatever needs it.
    """

    def __init__(
        self,
        initial_preferences: Union[Dict[str, Any], UserPreference, None] = None,
    ) -> None:
        self._baseline = _merge_preferences(initial_preferences)
        self._preferences = self._baseline.model_copy(deep=True)
        self._evidence_history: List[Evidence] = []
        self._beliefs: Dict[str, Belief] = {}

        now = utc_now()
        for key, (hypothesis, prior) in DEFAULT_PRIORS.items():
            self._beliefs[key] = Belief(
                key=key,
                hypothesis=hypothesis,
                probability=prior,
                last_updated=now,
            )

    def update_belief(self, hypothesis_key: str, evidence: Evidence) -> bool:
        """Fold one piece of evidence into a belief.

        Unknown keys are logged and skipped: nothing is mutated and False is
        returned.

        Returns:
            True if the belief was updated
        """
        belief = self._beliefs.get(hypothesis_key)
        if belief is None:
            log_warning(f"[Bayesian] Unknown hypothesis: {hypothesis_key}")
            return False

        prior = belief.probability
        likelihood = calculate_likelihood(evidence, hypothesis_key)
        posterior = bayes_rule(prior, likelihood, evidence_probability(prior, likelihood))

        belief.probability = posterior
        belief.evidence.append(evidence)
        belief.last_updated = utc_now()
        self._evidence_history.append(evidence)

        log_deterministic(
            f'[Bayesian] Updated "{hypothesis_key}": {prior:.3f} → {posterior:.3f} '
            f"(evidence: {evidence.type})"
        )

        self._preferences = derive_preferences(self._baseline, self._probabilities())
        return True

    def get_preferences(self) -> UserPreference:
        return self._preferences.model_copy(deep=True)

    def get_belief(self, hypothesis_key: str) -> Optional[Belief]:
        belief = self._beliefs.get(hypothesis_key)
        return belief.model_copy(deep=True) if belief is not None else None

    def get_all_beliefs(self) -> List[Belief]:
        """All beliefs, most probable first."""
        ordered = sorted(self._beliefs.values(), key=lambda b: b.probability, reverse=True)
        return [belief.model_copy(deep=True) for belief in ordered]

    def get_evidence_history(self) -> List[Evidence]:
        return list(self._evidence_history)

    def get_response_parameters(self) -> ResponseParameters:
        """Response-generation knobs derived from the current beliefs.

        Read-only: calling this never changes engine state.
        """
        wants_examples = self._beliefs.get("wants_code_examples")
        high_quality = self._beliefs.get("high_quality_expectations")

        return ResponseParameters(
            style=self._preferences.communication_style.verbosity,
            include_examples=wants_examples.probability > 0.6 if wants_examples else True,
            technical_level=self._preferences.communication_style.technical_level,
            quality_target=high_quality.probability * 100 if high_quality else 95.0,
        )

    def _probabilities(self) -> Dict[str, float]:
        return {key: belief.probability for key, belief in self._beliefs.items()}
