"""
Standalone script: fetch the street record once and print it to the console,
along with the average speed. Exits 0 on success and 1 on failure.
"""
import logging
import sys
import traceback

import config
from street_store import StreetRecordStore, StreetStoreError
from transform import build_summary, format_report

logger = logging.getLogger(__name__)


def main():
    try:
        with StreetRecordStore.from_config() as store:
            street = store.fetch_street_record()
    except StreetStoreError as e:
        print('Failed to fetch /street data.', file=sys.stderr)
        print(f"Message: {str(e)}", file=sys.stderr)
        traceback.print_exc(file=sys.stderr)
        return 1

    print(format_report(build_summary(street)))
    return 0


if __name__ == "__main__":
    logging.basicConfig(level=config.LOG_LEVEL)
    sys.exit(main())
