import os
import shutil
from collections import namedtuple
from logzero import logger

from chaosos.common import DEFAULT_CHAOS_BACKUP_SUFFIX, FileIOError

from typing import Union

BackupRecord = namedtuple('BackupRecord', ['original', 'backup'])


def backup_record(path: str,
                  suffix: str = DEFAULT_CHAOS_BACKUP_SUFFIX) -> BackupRecord:
    return BackupRecord(path, path + suffix)


def backup(path: str, suffix: str = DEFAULT_CHAOS_BACKUP_SUFFIX) -> BackupRecord:
    """
    Copy a script file aside before the experiment touches it.

    An existing backup is kept as is: it holds the true original when create
    runs more than once for the same file.

    :param path: The file to back up.
    :type path: str
    :param suffix: Appended to path to name the backup.
        Optional. (Default: chaosos.common.DEFAULT_CHAOS_BACKUP_SUFFIX)
    :type suffix: str
    :return: BackupRecord
    """
    record = backup_record(path, suffix)
    if os.path.exists(record.backup):
        logger.info("Backup %s already exists, keeping it", record.backup)
        return record
    try:
        shutil.copy2(record.original, record.backup)
    except OSError as e:
        logger.error("Failed to back up %s", record.original)
        raise FileIOError("backup", record.original, e) from e
    logger.debug("Backed up %s to %s", record.original, record.backup)
    return record


def restore(record: Union[BackupRecord, str],
            suffix: str = DEFAULT_CHAOS_BACKUP_SUFFIX) -> bool:
    """
    Put a backed up script file back in place and drop the backup.

    Returns True when there is nothing to restore, so destroy may run without
    a prior create.

    :param record: The BackupRecord from backup(), or the original path.
    :type record: BackupRecord or str
    :param suffix: Backup suffix used when record is a path.
        Optional. (Default: chaosos.common.DEFAULT_CHAOS_BACKUP_SUFFIX)
    :type suffix: str
    :return: bool
    """
    if isinstance(record, str):
        record = backup_record(record, suffix)
    if not os.path.exists(record.backup):
        logger.info("No backup at %s, nothing to restore", record.backup)
        return True
    try:
        shutil.copy2(record.backup, record.original)
        os.remove(record.backup)
    except OSError as e:
        logger.error("Failed to restore %s from %s", record.original,
                     record.backup)
        raise FileIOError("restore", record.original, e) from e
    logger.info("Restored %s", record.original)
    return True
