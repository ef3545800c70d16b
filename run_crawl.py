import argparse
import signal
import threading
from dotenv import load_dotenv

# Load environment variables from .env
load_dotenv()


def install_stop_handlers(stop_event):
    """SIGINT/SIGTERM ask the crawler to stop after the current page is saved."""
    def _handler(signum, frame):
        print(f"Received signal {signum}, stopping after the current page...")
        stop_event.set()

    signal.signal(signal.SIGINT, _handler)
    signal.signal(signal.SIGTERM, _handler)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Crawl a marketplace and merge listings into the dataset.")
    parser.add_argument("site", help="site preset, e.g. dubicars or yallamotor")
    parser.add_argument("--store", choices=("json", "db"), default="json")
    parser.add_argument("--output", help="JSON dataset path (json store only)")
    parser.add_argument("--max-pages", type=int, default=None)
    args = parser.parse_args(argv)

    from carsync.exceptions import CarSyncError, FatalCrawlError
    from carsync.services import make_store, run_crawl

    stop_event = threading.Event()
    install_stop_handlers(stop_event)

    try:
        store = make_store(args.store, args.output)
        report = run_crawl(args.site, store=store, stop_event=stop_event, max_pages=args.max_pages)
    except FatalCrawlError as e:
        print(f"Crawl failed: {e}")
        if e.report:
            print(f"Partial report: {e.report.as_dict()}")
        return 1
    except CarSyncError as e:
        print(f"Crawl could not start: {e}")
        return 2

    print(
        f"Pages visited: {report.pages_visited} | added: {report.added} | updated: {report.updated} "
        f"| skipped known: {report.skipped_known} | failed: {report.failed} | reason: {report.reason}"
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
