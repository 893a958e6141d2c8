"""
chaosos module

This module contains:
 - actions that inject faults into a host and undo them again (actions
   directory): host restart/stop, HTTP request delay, syscall delay through
   strace, and execution of user supplied scripts.
 - probes that gather data about an experiment's state (probes directory)
 - the script execution machinery: package download, backup/restore,
   extraction, entry point selection, terminal recording and transcript
   delivery (script directory)
 - common definitions: defaults, result codes and errors (common directory)
 - channels that run commands locally or remotely over SSH, the latter
   built on Python Fabric (execute directory).

Every action is a create/destroy pair. create injects the fault, destroy
undoes it. Both halves are invoked with the same uid, so destroy can find
whatever create left behind (backups, transcripts, tracers). destroy must be
safe to call when create never ran or failed part way.

By design, chaostoolkit runs an experiment if and only if 'steady state' is met.
Steady state is composed of one or more 'probes'. Probes gather and return
system state data. An experiment defines a 'tolerance' (predicate) for each
probe that must be true before the next probe is executed. All probes must pass
the tolerance test before the system is considered to be in a steady state.

When the steady state is met, the 'method' of the experiment will execute. An
experiment's 'method' is composed of a list of one or more 'actions' that
introduce 'chaos' into the system. The destroy half of each action belongs in
the experiment's 'rollbacks'.

Actions report an ExperimentResult (success, code, result, error) rather than
raising. A chaos engineer inspecting the journal can tell a fault that was
injected but whose report could not be delivered (success with a
delivery_error in the result) from a fault that was never injected.

Things to consider when adding or modifying actions and/or probes:
1. Actions and Probes could/may be used outside of Chaos experiments for other
   kinds of integration or systems testing. Therefore, actions should
   be written in a way they can reused outside of the context of the
   the chaosos module and the chaostoolkit.
"""
