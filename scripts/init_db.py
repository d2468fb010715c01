#!/usr/bin/env python3
"""
Создать таблицы движка (purchases, purchase_locks, subscriptions, assets, audit_logs).
Запуск из корня проекта: python -m scripts.init_db
"""
from app.db.base import Base
from app.db.session import engine
from app.models import asset, audit_log, purchase, purchase_lock, subscription  # noqa: F401


def main():
    Base.metadata.create_all(bind=engine)
    print(f"Таблицы созданы: {', '.join(sorted(Base.metadata.tables))}")


if __name__ == "__main__":
    main()
