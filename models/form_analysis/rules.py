import logging
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Sequence, Tuple, Type

from .types import FormFeedback, JointName, Pose

logger = logging.getLogger(__name__)

_SIDES = ("left", "right")


def _side_joint(side: str, joint: str) -> JointName:
    if side not in _SIDES:
        raise ValueError(f"side must be one of {_SIDES}, got {side!r}")
    return JointName(f"{side}_{joint}")


class ExerciseRule(ABC):
    """
    A single, reusable check of a pose.

    Rules are pure predicates. A rule whose required joints are missing
    cannot make a determination and must pass.
    """

    feedback: FormFeedback

    @abstractmethod
    def evaluate(self, pose: Pose) -> bool:
        """
        Evaluate a pose against the rule's criteria.

        Args:
            pose: Pose captured from a single frame

        Returns:
            True if the pose satisfies the rule, False otherwise
        """

    def __repr__(self):
        return f"{type(self).__name__}()"


class BackStraightRule(ExerciseRule):
    """Checks that the shoulder stays at or above hip level (side-on view)."""

    feedback = FormFeedback.KEEP_BACK_STRAIGHT

    def __init__(self, side: str = "left"):
        self.side = side
        self.shoulder = _side_joint(side, "shoulder")
        self.hip = _side_joint(side, "hip")

    def evaluate(self, pose: Pose) -> bool:
        shoulder = pose.get(self.shoulder)
        hip = pose.get(self.hip)
        if shoulder is None or hip is None:
            return True
        return shoulder.position.y >= hip.position.y

    def __repr__(self):
        return f"BackStraightRule(side={self.side!r})"


class SquatDepthRule(ExerciseRule):
    """Checks that the hip reaches knee level or lower."""

    feedback = FormFeedback.SQUAT_DEEPER

    def __init__(self, side: str = "left"):
        self.side = side
        self.hip = _side_joint(side, "hip")
        self.knee = _side_joint(side, "knee")

    def evaluate(self, pose: Pose) -> bool:
        hip = pose.get(self.hip)
        knee = pose.get(self.knee)
        if hip is None or knee is None:
            return True
        return hip.position.y <= knee.position.y

    def __repr__(self):
        return f"SquatDepthRule(side={self.side!r})"


# Names accepted in configuration, mapped to rule classes
RULE_REGISTRY: Dict[str, Type[ExerciseRule]] = {
    "back_straight": BackStraightRule,
    "squat_depth": SquatDepthRule,
}


def build_rules(names: Iterable[str]) -> List[ExerciseRule]:
    """
    Instantiate rules from their configured names, keeping the given order.

    Args:
        names: Rule names from RULE_REGISTRY

    Returns:
        List of rule instances
    """
    rules = []
    for name in names:
        if name not in RULE_REGISTRY:
            raise ValueError(f"Unknown rule {name!r}. Available: {sorted(RULE_REGISTRY)}")
        rules.append(RULE_REGISTRY[name]())
    return rules


class AnalysisEngine(ABC):
    """Analyzes a detected pose and returns actionable feedback."""

    @abstractmethod
    def analyze(self, pose: Pose) -> List[FormFeedback]:
        """
        Analyze a pose captured from a single frame.

        Args:
            pose: Pose to analyze

        Returns:
            Feedback items; never empty
        """


class RuleBasedAnalysisEngine(AnalysisEngine):
    """
    Evaluates a pose against an ordered set of ExerciseRule objects.

    The engine only holds its rule tuple, so one instance can serve any
    number of concurrent pipeline runs.
    """

    def __init__(self, rules: Sequence[ExerciseRule]):
        self.rules: Tuple[ExerciseRule, ...] = tuple(rules)

    @classmethod
    def squat_engine(cls) -> "RuleBasedAnalysisEngine":
        """Engine pre-configured for squat analysis."""
        return cls([BackStraightRule(), SquatDepthRule()])

    @classmethod
    def from_names(cls, names: Iterable[str]) -> "RuleBasedAnalysisEngine":
        return cls(build_rules(names))

    def analyze(self, pose: Pose) -> List[FormFeedback]:
        feedback = [rule.feedback for rule in self.rules if not rule.evaluate(pose)]

        # If all rules passed, provide positive reinforcement
        if not feedback:
            return [FormFeedback.GOOD_FORM]

        logger.debug("Rules failed: %s", [item.value for item in feedback])
        return feedback
