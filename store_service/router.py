"""
ROBOSTORE Store Service Router

Endpoints for the robot catalog and customer orders.
"""

import asyncio
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException

from core.auth import AuthenticatedUser, get_current_user
from core.config import settings
from shared.utils import log_execution_time

from .models import (
    Order,
    OrderCreate,
    Robot,
    RobotCreate,
    create_order,
    create_robot,
    get_robot,
    list_orders_for_user,
    list_robots,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ============= Catalog =============

@router.get("/robots", response_model=List[Robot])
async def get_robots(category: Optional[str] = None):
    """List the robot catalog."""
    return list_robots(category)


@router.get("/robots/{robot_id}", response_model=Robot)
async def get_robot_by_id(robot_id: str):
    robot = get_robot(robot_id)
    if robot is None:
        raise HTTPException(status_code=404, detail="Robot not found")
    return robot


@router.post("/robots", response_model=Robot, status_code=201)
async def add_robot(
    robot: RobotCreate,
    current_user: AuthenticatedUser = Depends(get_current_user)
):
    """Add a robot to the catalog."""
    logger.info(f"{current_user.email} is adding robot '{robot.name}'")
    return create_robot(robot)


# ============= Orders =============

@router.post("/orders", status_code=201)
@log_execution_time
async def place_order(
    order: OrderCreate,
    current_user: AuthenticatedUser = Depends(get_current_user)
):
    """
    Place an order for the current user.

    Payment is simulated by a fixed processing delay before the order
    is stored with status "processing".
    """
    if settings.ORDER_PROCESSING_DELAY_SECONDS > 0:
        await asyncio.sleep(settings.ORDER_PROCESSING_DELAY_SECONDS)

    created = create_order(current_user.uid, order)
    return {"success": True, "order": created}


@router.get("/orders", response_model=List[Order])
async def get_orders(current_user: AuthenticatedUser = Depends(get_current_user)):
    """Order history of the current user, newest first."""
    return list_orders_for_user(current_user.uid)
