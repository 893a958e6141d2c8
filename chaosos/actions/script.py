import shutil
from logzero import logger

from chaosos.common import (ChaosError, ChannelUnavailableError,
                            DEFAULT_CHAOS_COMMAND_TIMEOUT,
                            DEFAULT_CHAOS_DOWNLOAD_DIR,
                            DEFAULT_CHAOS_DOWNLOAD_TIMEOUT,
                            DEFAULT_CHAOS_FILE_ARGS_DELIMITER,
                            DEFAULT_CHAOS_PYTHON_INTERPRETER,
                            DEFAULT_CHAOS_RECORDING_DIR,
                            DEFAULT_CHAOS_SCRIPT_COMMANDS,
                            DEFAULT_CHAOS_WORK_DIR_CLEANUP,
                            ExperimentInvocation, ExperimentResult,
                            FileIOError, fail_result, is_destroy,
                            new_invocation, result_to_dict, success_result)
from chaosos.execute.execute import Channel, LocalChannel
from chaosos.script.backup import BackupRecord, backup, restore
from chaosos.script.entry import entry_for_file, select
from chaosos.script.extract import extract
from chaosos.script.flags import (DOWNLOAD_URL_FLAG, DSN_FLAG, FILE_ARGS_FLAG,
                                  FILE_FLAG, NFS_HOST_FLAG, RECOVER_FLAG,
                                  UPLOAD_URL_FLAG, ScriptFlags)
from chaosos.script.package import resolve
from chaosos.script.record import run
from chaosos.script.sink import deliver

from typing import Dict, List


def _restore_after_failure(record: BackupRecord):
    """
    Best-effort restore after a failed create. The outcome is logged only;
    the caller reports its own error.
    """
    logger.info("Create failed, restoring %s", record.original)
    try:
        restore(record)
    except FileIOError as e:
        logger.error("Restore after failure did not complete for %s",
                     record.original)
        logger.exception(e)


def _remove_work_dir(work_dir: str, cleanup: bool = True):
    if not cleanup:
        logger.info("Skip removal of %s.", work_dir)
        return
    logger.debug("Recursively deleting %s", work_dir)
    try:
        shutil.rmtree(work_dir)
    except OSError as e:
        logger.error("Failed to recursively delete the contents of %s",
                     work_dir)
        logger.exception(e)


def _create(uid: str, flags: ScriptFlags, channel: Channel,
            cleanup: bool, want_shell_recording: bool, recording_dir: str,
            download_dir: str, download_timeout: int, interpreter: str,
            timeout) -> ExperimentResult:
    package = resolve(flags, channel, uid, download_dir=download_dir,
                      timeout=download_timeout)
    record = backup(package.path)

    try:
        if package.archived:
            package = package._replace(work_dir=extract(package.path,
                                                         token=uid))
            entry = select(package.work_dir, want_recovery=flags.recover,
                           want_shell_recording=want_shell_recording)
        else:
            if flags.recover:
                logger.info("%s is not an archive, running it as is despite "
                            "--%s", package.path, RECOVER_FLAG)
            entry = entry_for_file(package.path, want_shell_recording)
        session, result = run(entry, flags.file_args, uid, channel,
                              recording_dir=recording_dir,
                              interpreter=interpreter, timeout=timeout)
    except ChaosError:
        _restore_after_failure(record)
        raise

    payload = deliver(session, uid, flags, channel=channel,
                      output_message=result.result)
    if payload["delivery_error"] or payload["read_error"]:
        logger.error("Transcript delivery for %s incomplete: %s %s", uid,
                     payload["read_error"], payload["delivery_error"])
    if not result.success:
        _restore_after_failure(record)
        return result._replace(result=payload)

    if package.work_dir:
        _remove_work_dir(package.work_dir, cleanup)
    logger.info("Script experiment %s created", uid)
    return result._replace(result=payload)


def _destroy(uid: str, flags: ScriptFlags, channel: Channel,
             download_dir: str) -> ExperimentResult:
    package = resolve(flags, channel, uid, fetch=False,
                      download_dir=download_dir)
    try:
        restore(package.path)
    except FileIOError as e:
        # Reported, but destroy is still complete; no retry.
        return fail_result(e)
    logger.info("Script experiment %s destroyed", uid)
    return success_result(uid)


def execute_script(invocation: ExperimentInvocation, channel: Channel,
                   commands: List[str] = DEFAULT_CHAOS_SCRIPT_COMMANDS,
                   cleanup: bool = DEFAULT_CHAOS_WORK_DIR_CLEANUP,
                   want_shell_recording: bool = True,
                   recording_dir: str = DEFAULT_CHAOS_RECORDING_DIR,
                   download_dir: str = DEFAULT_CHAOS_DOWNLOAD_DIR,
                   download_timeout: int = DEFAULT_CHAOS_DOWNLOAD_TIMEOUT,
                   interpreter: str = DEFAULT_CHAOS_PYTHON_INTERPRETER,
                   delimiter: str = DEFAULT_CHAOS_FILE_ARGS_DELIMITER,
                   timeout=DEFAULT_CHAOS_COMMAND_TIMEOUT) -> ExperimentResult:
    """
    Create or destroy a script execute experiment.

    create: resolve (and download) the script package, back it up, extract
    it, pick the entry point, run it under a terminal recording and deliver
    the transcript. Any failure after the backup restores the package file
    before the error is returned. A script exiting non-zero still gets its
    transcript delivered; the result is failed and carries the delivery
    payload.

    destroy: restore the backed up package file. Succeeds when there is
    nothing to restore.

    Channel and flag problems are reported before anything on the target is
    touched. The channel must be local: package files are handled on this
    host's file system.

    :param invocation: uid, mode and flags of the experiment.
    :type invocation: ExperimentInvocation
    :param channel: Runs commands on the target.
    :type channel: Channel
    :param commands: Commands that must be available on the target.
        Optional. (Default: chaosos.common.DEFAULT_CHAOS_SCRIPT_COMMANDS)
    :type commands: List[str]
    :param cleanup: Remove the extraction directory after a successful run.
        Failed runs always keep it for inspection.
        Optional. (Default: chaosos.common.DEFAULT_CHAOS_WORK_DIR_CLEANUP)
    :type cleanup: bool
    :param want_shell_recording: Record shell entry points with `script`.
        Optional. (Default: True)
    :type want_shell_recording: bool
    :param recording_dir: Directory for <uid>.time and <uid>.out.
        Optional. (Default: chaosos.common.DEFAULT_CHAOS_RECORDING_DIR)
    :type recording_dir: str
    :param download_dir: Directory receiving downloaded packages.
        Optional. (Default: chaosos.common.DEFAULT_CHAOS_DOWNLOAD_DIR)
    :type download_dir: str
    :param download_timeout: Seconds allowed for the download.
        Optional. (Default: chaosos.common.DEFAULT_CHAOS_DOWNLOAD_TIMEOUT)
    :type download_timeout: int
    :param interpreter: Interpreter for .py entry points.
        Optional. (Default: chaosos.common.DEFAULT_CHAOS_PYTHON_INTERPRETER)
    :type interpreter: str
    :param delimiter: Separator of the file-args flag.
        Optional. (Default: chaosos.common.DEFAULT_CHAOS_FILE_ARGS_DELIMITER)
    :type delimiter: str
    :param timeout: Seconds the script may run. None defers to the channel.
        Optional. (Default: None)
    :return: ExperimentResult
    """
    uid = invocation.uid
    if channel is None:
        logger.error("No channel set for %s", uid)
        return fail_result(ChannelUnavailableError("channel", "not set"))
    if not channel.local:
        # Packages are fetched, unpacked and backed up on this host
        logger.error("Script experiment %s needs a local channel, got %s",
                     uid, type(channel).__name__)
        return fail_result(ChannelUnavailableError(
            "channel", type(channel).__name__, "script execute runs locally"))

    try:
        response, ok = channel.is_all_commands_available(commands)
        if not ok:
            return response
        flags = ScriptFlags.from_flags(invocation.flags, delimiter=delimiter)
        logger.debug("%s %s: %s", invocation.mode, uid, flags)
        if is_destroy(invocation):
            return _destroy(uid, flags, channel, download_dir)
        return _create(uid, flags, channel, cleanup, want_shell_recording,
                       recording_dir, download_dir, download_timeout,
                       interpreter, timeout)
    except ChaosError as e:
        logger.error("Script experiment %s failed: %s", uid, e)
        return fail_result(e)


def _script_flags(file, file_args, download_url, upload_url, dsn, nfs_host,
                  recover) -> Dict[str, str]:
    flags = {
        FILE_FLAG: file,
        FILE_ARGS_FLAG: file_args,
        DOWNLOAD_URL_FLAG: download_url,
        UPLOAD_URL_FLAG: upload_url,
        DSN_FLAG: dsn,
        NFS_HOST_FLAG: nfs_host,
        RECOVER_FLAG: recover,
    }
    return {k: v for k, v in flags.items() if v is not None}


def create_script(uid: str, file: str = None, file_args: str = None,
                  download_url: str = None, upload_url: str = None,
                  dsn: str = None, nfs_host: str = None,
                  recover: str = None,
                  cleanup: bool = DEFAULT_CHAOS_WORK_DIR_CLEANUP,
                  recording_dir: str = DEFAULT_CHAOS_RECORDING_DIR,
                  download_dir: str = DEFAULT_CHAOS_DOWNLOAD_DIR) -> Dict:
    """
    Run a packaged script on this host and record what it printed.

    Chaos Toolkit entry point for the create half of a script experiment.
    Pair it with destroy_script (same uid, file and download_url) in the
    experiment's rollbacks. The extension must run on the host under test;
    packages are fetched, unpacked and backed up on the local file system.

    :param uid: Identifies the experiment across create and destroy.
        Required.
    :type uid: str
    :param file: Path of the script or tar package. With download_url only
        its file name is used.
        Optional. (Default: None)
    :type file: str
    :param file_args: Positional script arguments joined by
        chaosos.common.DEFAULT_CHAOS_FILE_ARGS_DELIMITER.
        Optional. (Default: None)
    :type file_args: str
    :param download_url: URL of a tar package to fetch first.
        Optional. (Default: None)
    :type download_url: str
    :param upload_url: POST the transcript here.
        Optional. (Default: None)
    :type upload_url: str
    :param dsn: Store the transcript in this database.
        Optional. (Default: None)
    :type dsn: str
    :param nfs_host: Copy the transcript to this NFS export.
        Optional. (Default: None)
    :type nfs_host: str
    :param recover: Run the package's recover entry instead of main.
        Optional. (Default: None)
    :type recover: str
    :param recording_dir: Directory for <uid>.time and <uid>.out.
        Optional. (Default: chaosos.common.DEFAULT_CHAOS_RECORDING_DIR)
    :type recording_dir: str
    :param download_dir: Directory receiving downloaded packages.
        Optional. (Default: chaosos.common.DEFAULT_CHAOS_DOWNLOAD_DIR)
    :type download_dir: str
    :return: Dict
    """
    flags = _script_flags(file, file_args, download_url, upload_url, dsn,
                          nfs_host, recover)
    result = execute_script(new_invocation(uid, flags), LocalChannel(),
                            cleanup=cleanup, recording_dir=recording_dir,
                            download_dir=download_dir)
    return result_to_dict(result)


def destroy_script(uid: str, file: str = None, download_url: str = None,
                   download_dir: str = DEFAULT_CHAOS_DOWNLOAD_DIR) -> Dict:
    """
    Undo create_script: put the backed up script package back in place.

    :param uid: The uid given to create_script.
        Required.
    :type uid: str
    :param file: The file given to create_script.
        Optional. (Default: None)
    :type file: str
    :param download_url: The download_url given to create_script.
        Optional. (Default: None)
    :type download_url: str
    :param download_dir: The download_dir given to create_script.
        Optional. (Default: chaosos.common.DEFAULT_CHAOS_DOWNLOAD_DIR)
    :type download_dir: str
    :return: Dict
    """
    flags = _script_flags(file, None, download_url, None, None, None, None)
    result = execute_script(new_invocation(uid, flags, destroy=True),
                            LocalChannel(), download_dir=download_dir)
    return result_to_dict(result)
