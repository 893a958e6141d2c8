from logzero import logger
from os.path import exists

from chaosos.common import (DEFAULT_CHAOS_BACKUP_SUFFIX,
                            DEFAULT_CHAOS_RECORDING_DIR, FileIOError)
from chaosos.script.backup import backup_record
from chaosos.script.record import recording_session
from chaosos.script.sink import read_transcript


def script_is_backed_up(file: str,
                        suffix: str = DEFAULT_CHAOS_BACKUP_SUFFIX) -> bool:
    """
    Is there a backup of the script package waiting for destroy?

    :param file: The script or package path given to create_script.
    :type file: str
    :param suffix: Backup suffix.
        Optional. (Default: chaosos.common.DEFAULT_CHAOS_BACKUP_SUFFIX)
    :type suffix: str
    :return: bool
    """
    record = backup_record(file, suffix)
    logger.debug("Checking for backup %s", record.backup)
    return exists(record.backup)


def get_script_output(uid: str,
                      recording_dir: str = DEFAULT_CHAOS_RECORDING_DIR) -> str:
    """
    Get the output transcript recorded for a script experiment.

    Returns an empty string when nothing was recorded.

    :param uid: The experiment's uid.
    :type uid: str
    :param recording_dir: Directory holding the transcripts.
        Optional. (Default: chaosos.common.DEFAULT_CHAOS_RECORDING_DIR)
    :type recording_dir: str
    :return: str
    """
    session = recording_session(uid, recording_dir)
    try:
        return read_transcript(session.output)
    except FileIOError as e:
        logger.info("No transcript for %s: %s", uid, e)
        return ""


def script_output_contains(uid: str, text: str,
                           recording_dir: str = DEFAULT_CHAOS_RECORDING_DIR) -> bool:
    """
    Did the script of an experiment print the given text?
    """
    return text in get_script_output(uid, recording_dir)
