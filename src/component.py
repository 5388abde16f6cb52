import logging
import sys

from keboola.component.base import ComponentBase
from keboola.component.exceptions import UserException

from configuration import Configuration
from ibm_session import IBMCloudSession, SessionProvider
from snapshot_lister import SnapshotLister
from table_writer import SnapshotTableWriter


class Component(ComponentBase):
    """IBM Cloud billing report snapshot list extractor."""

    def __init__(self, debug=False, session: SessionProvider | None = None):
        super().__init__()

        self.config = Configuration(**self.configuration.parameters)

        if debug or self.config.debug:
            logging.getLogger().setLevel(logging.DEBUG)
        logging.info("Loading configuration...")

        # Session is created per run, never shared
        self.session = session or IBMCloudSession(self.config.ibm_parameters)
        self.lister = SnapshotLister(self.session, max_pages=self.config.max_pages)
        self.writer = SnapshotTableWriter(
            self, incremental=self.config.loading_options.incremental_output_bool
        )

    def run(self):
        """List the billing snapshots of the configured month and write them as tables."""
        try:
            query = self.lister.build_query(
                month=self.config.month,
                date_from=self.config.date_from,
                date_to=self.config.date_to,
            )
            logging.info(f"Listing billing snapshots for account {query.account_id}, month {query.month}")

            result = self.lister.list_snapshots(query)
            self.writer.write(result)

            logging.info(
                f"Extraction {result.id} finished successfully with "
                f"{len(result.snapshots)} snapshots."
            )

        except Exception as e:
            logging.error(f"Snapshot extraction failed: {e}")
            raise


if __name__ == "__main__":
    if len(sys.argv) > 1:
        debug_arg = sys.argv[1]
    else:
        debug_arg = False
    try:
        comp = Component(debug_arg)
        comp.run()
    except UserException as exc:
        logging.exception(exc)
        exit(1)
    except Exception as exc:
        logging.exception(exc)
        exit(2)
