from decimal import Decimal

from sqlalchemy.orm import Session

from app.models.asset import Asset
from app.paywall.models import AssetInfo
from app.paywall.ports import Catalog


class CatalogService(Catalog):
    def __init__(self, db: Session):
        self.db = db

    def get(self, asset_id: str) -> Asset | None:
        return self.db.query(Asset).filter(Asset.id == asset_id).one_or_none()

    def get_asset(self, asset_id: str) -> AssetInfo | None:
        asset = self.get(asset_id)
        if asset is None:
            return None
        return AssetInfo(
            id=asset.id,
            kind=asset.kind,
            price=Decimal(str(asset.price)) if asset.price is not None else None,
            associated_image_id=asset.associated_image_id,
            storage_key=asset.storage_key,
        )

    def find_video_for_image(self, image_id: str) -> str | None:
        row = (
            self.db.query(Asset.id)
            .filter(Asset.kind == "video", Asset.associated_image_id == image_id)
            .order_by(Asset.created_at.asc())
            .first()
        )
        return row.id if row else None

    def create(
        self,
        kind: str,
        storage_key: str,
        title: str = "",
        price: Decimal | None = None,
        associated_image_id: str | None = None,
    ) -> Asset:
        asset = Asset(
            kind=kind,
            storage_key=storage_key,
            title=title,
            price=price,
            associated_image_id=associated_image_id,
        )
        self.db.add(asset)
        self.db.commit()
        self.db.refresh(asset)
        return asset
