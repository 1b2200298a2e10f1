from sqlalchemy.orm import declarative_base

# ORMモデル共通のBaseクラス
Base = declarative_base()
