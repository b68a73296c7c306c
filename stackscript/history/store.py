import json
import logging
import os
from typing import List

from stackscript.template.engine import TemplateExecution
from stackscript.template.errors import CorruptRecordError, ExecutionNotFoundError
from stackscript.utils.json import CustomEncoder
from stackscript.utils.strings import is_revert_id

LOG = logging.getLogger(__name__)

RECORD_FILE_SUFFIX = ".json"


class HistoryStore:
    """
    Stores template executions as one JSON file per execution, named after its revert ID. Records are written once
    and never modified afterwards.
    """

    directory: str

    def __init__(self, directory: str):
        self.directory = directory

    def _path(self, revert_id: str) -> str:
        return os.path.join(self.directory, f"{revert_id}{RECORD_FILE_SUFFIX}")

    def save(self, execution: TemplateExecution) -> str:
        """
        Persists the given execution.

        :return: the path of the written record
        :raises FileExistsError: if an execution with the same revert ID has already been saved
        """
        os.makedirs(self.directory, exist_ok=True)
        path = self._path(execution.id)
        # mode "x" refuses to overwrite existing records
        with open(path, "x") as fd:
            json.dump(execution.to_dict(), fd, cls=CustomEncoder, indent=2)
        LOG.debug("Stored template execution %s in %s", execution.id, path)
        return path

    def get_template_execution(self, revert_id: str) -> TemplateExecution:
        """
        Loads the execution stored under the given revert ID.

        :raises ExecutionNotFoundError: if there is no such execution
        :raises CorruptRecordError: if the stored record cannot be read
        """
        revert_id = (revert_id or "").strip().upper()
        if not is_revert_id(revert_id):
            raise ExecutionNotFoundError(revert_id)
        path = self._path(revert_id)
        if not os.path.isfile(path):
            raise ExecutionNotFoundError(revert_id)
        try:
            with open(path) as fd:
                return TemplateExecution.from_dict(json.load(fd))
        except (ValueError, KeyError, TypeError) as e:
            raise CorruptRecordError(f"cannot read template execution {revert_id}: {e}") from e

    def list_executions(self) -> List[TemplateExecution]:
        """Returns all stored executions, oldest first. Unreadable records are skipped."""
        if not os.path.isdir(self.directory):
            return []
        result = []
        for file_name in sorted(os.listdir(self.directory)):
            revert_id, suffix = os.path.splitext(file_name)
            if suffix != RECORD_FILE_SUFFIX or not is_revert_id(revert_id):
                continue
            try:
                result.append(self.get_template_execution(revert_id))
            except CorruptRecordError as e:
                LOG.warning("Skipping unreadable record %s: %s", file_name, e.message)
        return result
