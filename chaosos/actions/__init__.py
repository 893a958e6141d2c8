"""
Chaos 'actions' module.

This module contains *actions* that inject faults into a host:

 - host.py: restart or power off the host
 - http.py: delay an HTTP request
 - kernel.py: delay a syscall of running processes with strace
 - script.py: run a user supplied script package and record its output

Each *action* has two layers. execute_* functions take an
ExperimentInvocation and a Channel and return an ExperimentResult; they are
what an orchestrator with its own flag handling calls. The plain functions
(create_script, destroy_script, restart_host, ...) take primitive arguments,
so chaostoolkit experiments can reference them directly, and return the
result as a dict for the journal.

*Actions* are executed in the order they are declared. Faults, failures, and
exceptions encountered while executing an *action* do NOT cause an experiment to
fail. Each action's results are logged in the experiment's 'journal'.
Manually or programmatically inspecting an experiment's journal may be
required to decide if an experiment truely 'succeeded' or 'failed'.

Every *action* must tolerate its destroy half running without a prior
create.
"""
