from fastapi import APIRouter

from clipforge.config.templates import list_templates

router = APIRouter()


@router.get("/templates")
async def get_templates():
    return {"templates": [t.model_dump(mode="json") for t in list_templates()]}
