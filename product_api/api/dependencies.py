from fastapi import Depends, Request
from pymongo.collection import Collection

from product_api.config import Settings
from product_api.database import get_db
from product_api.services.product_service import ProductService


def get_app_settings(request: Request) -> Settings:
    """Settings the running application was created with."""
    return request.app.state.settings


def get_product_service(
    db: Collection = Depends(get_db),
    settings: Settings = Depends(get_app_settings)
) -> ProductService:
    return ProductService(db, max_page_size=settings.MAX_PAGE_SIZE)
