#!/usr/bin/env python3
"""
Record store connection check for the Package Desk.

Verifies the Supabase configuration by reading each desk table and opening
(then releasing) a packages change subscription. Run it from the project
root after configuring SUPABASE_URL and SUPABASE_KEY.
"""

import asyncio
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

from package_desk.config import get_config
from package_desk.repositories import RepositoryError, RepositoryFactory
from package_desk.utils.database import SupabaseRecordStore

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


class ConnectionTester:
    """Checks Supabase reads and the realtime feed."""

    def __init__(self):
        self.store = SupabaseRecordStore()
        self.repositories = RepositoryFactory(self.store)
        self.test_results: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "tests": {},
            "summary": {"passed": 0, "failed": 0, "total": 0}
        }

    def log_test_result(self, test_name: str, passed: bool, details: Dict[str, Any] = None):
        """Log the result of a test."""
        self.test_results["tests"][test_name] = {
            "passed": passed,
            "details": details or {},
        }

        if passed:
            self.test_results["summary"]["passed"] += 1
            logger.info(f"{test_name}: PASSED")
        else:
            self.test_results["summary"]["failed"] += 1
            logger.error(f"{test_name}: FAILED")
            if details:
                logger.error(f"   Details: {details}")

        self.test_results["summary"]["total"] += 1

    async def check_table_reads(self) -> None:
        repositories = {
            "residents": self.repositories.get_resident_repository(),
            "storage_locations": self.repositories.get_storage_location_repository(),
            "packages": self.repositories.get_package_repository(),
        }
        for table, repository in repositories.items():
            try:
                rows = await repository.list_all()
                self.log_test_result(f"Read {table}", True, {"rows": len(rows)})
            except RepositoryError as e:
                self.log_test_result(f"Read {table}", False, {"error": e.message})

    async def check_change_feed(self) -> None:
        try:
            subscription = await self.store.subscribe("packages")
            await self.store.unsubscribe(subscription)
            self.log_test_result("Packages change feed", True)
        except Exception as e:
            self.log_test_result("Packages change feed", False, {"error": str(e)})

    async def run(self) -> bool:
        logger.info(f"Checking Supabase at {get_config().supabase.url}")
        await self.check_table_reads()
        await self.check_change_feed()
        await self.store.close()

        logger.info(json.dumps(self.test_results["summary"]))
        return self.test_results["summary"]["failed"] == 0


def main():
    ok = asyncio.run(ConnectionTester().run())
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
