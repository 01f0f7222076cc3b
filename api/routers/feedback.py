from fastapi import APIRouter

from core.config import settings
from models.form_analysis import FormFeedback, RULE_REGISTRY

router = APIRouter()

@router.get("/feedback")
async def list_feedback():
    """List every feedback item the analysis can produce."""
    return {"feedback": [item.to_dict() for item in FormFeedback]}

@router.get("/rules")
async def list_rules():
    """List the configured rule set and every rule that can be configured."""
    return {
        "configured": list(settings.RULE_SET),
        "available": [
            {"id": name, "feedback": rule.feedback.value}
            for name, rule in RULE_REGISTRY.items()
        ],
    }
