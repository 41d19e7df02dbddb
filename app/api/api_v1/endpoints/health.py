from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session
from datetime import datetime

from app.core.database import get_db

router = APIRouter()


@router.get("/")
async def health_check():
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "service": "Trade Journal Analytics"
    }


@router.get("/database")
async def database_health(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
        return {
            "status": "healthy",
            "message": "データベース接続正常"
        }
    except Exception as e:
        return {
            "status": "unhealthy",
            "message": f"データベース接続エラー: {str(e)}"
        }
