"""
ROBOSTORE Store Service - Robot Catalog

Robot product documents and their repository functions.
"""

import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from core.database import get_database
from shared.utils import get_now_iso

logger = logging.getLogger(__name__)

ROBOTS_COLLECTION = "robots"


class RobotBase(BaseModel):
    name: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    price: float = Field(..., ge=0)
    image: str = Field(..., min_length=1)
    specifications: Dict[str, Any]
    category: str = Field(..., min_length=1)


class RobotCreate(RobotBase):
    pass


class Robot(RobotBase):
    id: str
    created_at: Optional[str] = None


def list_robots(category: Optional[str] = None) -> List[Robot]:
    """All robots, optionally narrowed to one category."""
    query = get_database().collection(ROBOTS_COLLECTION)
    if category:
        query = query.where("category", "==", category)
    return [Robot(id=doc.id, **doc.to_dict()) for doc in query.stream()]


def get_robot(robot_id: str) -> Optional[Robot]:
    doc = get_database().collection(ROBOTS_COLLECTION).document(robot_id).get()
    if not doc.exists:
        return None
    return Robot(id=doc.id, **doc.to_dict())


def create_robot(robot: RobotCreate) -> Robot:
    data = robot.model_dump()
    data["created_at"] = get_now_iso()

    _, robot_ref = get_database().collection(ROBOTS_COLLECTION).add(data)
    logger.info(f"🤖 Added robot {robot_ref.id} ({robot.name})")
    return Robot(id=robot_ref.id, **data)
