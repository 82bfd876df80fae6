# routes/users.py
from fastapi import APIRouter, HTTPException, Depends
from typing import List
import logging

from database import DocumentDecodeError, decode, decode_many, get_db
from models.user import User, UserRecord
from .auth import require_root_admin

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("/", response_model=List[User])
async def get_users(current_user: User = Depends(require_root_admin), db=Depends(get_db)):
    docs = await db.users.find({}, {"_id": 0}).sort("name", 1).to_list(None)
    return [record.public() for record in decode_many(UserRecord, docs, "users", skip_invalid=True)]


@router.put("/{user_id}/toggle-role", response_model=User)
async def toggle_role(user_id: str, current_user: User = Depends(require_root_admin), db=Depends(get_db)):
    """Promote a student to admin, or demote an admin back to student."""
    doc = await db.users.find_one({"id": user_id})
    if not doc:
        raise HTTPException(status_code=404, detail="User not found")
    try:
        user = decode(UserRecord, doc, "users").public()
    except DocumentDecodeError as e:
        logger.error(str(e))
        raise HTTPException(status_code=500, detail=str(e))

    if user.role == "root-admin":
        raise HTTPException(status_code=403, detail="Root admin role cannot be changed")

    new_role = "student" if user.role == "admin" else "admin"
    await db.users.update_one({"id": user_id}, {"$set": {"role": new_role}})
    logger.info(f"User {user_id} role changed {user.role} -> {new_role} by {current_user.id}")
    return user.model_copy(update={"role": new_role})
