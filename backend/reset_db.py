#!/usr/bin/env python
"""データベースを作り直し、初期管理者アカウントを作成するスクリプト"""
from warehouse.database import Base, SessionLocal, engine, init_db
from warehouse.services.user_service import ensure_default_admin

if __name__ == "__main__":
    print("既存のテーブルを削除しています...")
    Base.metadata.drop_all(bind=engine)

    print("新しいテーブルを作成しています...")
    init_db()

    with SessionLocal() as db:
        password = ensure_default_admin(db)
    if password:
        print(f"管理者アカウント: admin / {password}")
    print("データベースをリセットしました")
