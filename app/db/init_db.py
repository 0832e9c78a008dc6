"""Create the leaveflow tables. Run with: python -m app.db.init_db"""

import logging

from app.db.database import init_db

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    init_db()
