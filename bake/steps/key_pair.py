"""Temporary SSH keypair for the build instance."""

from __future__ import annotations

import os
from pathlib import Path

from bake.base import keys
from bake.base.exceptions import CloudbakeError, ComputeError, KeyPairNotFoundError
from bake.config import temporary_name
from bake.pipeline.state import BuildState
from bake.pipeline.step import Step, StepAction


class KeyPair(Step):
    """Create (or register) the keypair injected into the build instance.

    * With ``ssh_private_key_file`` the public half of that key is
      registered under a temporary name.
    * With SSH agent auth nothing is created.
    * Otherwise the cloud generates a temporary keypair whose private key
      is kept in ``state.private_key``.

    Produces ``keypair`` and ``private_key``.
    """

    def __init__(self, *, debug: bool = False, debug_key_path: str = "") -> None:
        self.debug = debug
        self.debug_key_path = debug_key_path

    def run(self, state: BuildState) -> StepAction:
        ui = state.ui
        comm = state.config.communicator

        if comm.ssh_private_key_file:
            ui.say("Using existing SSH private key")
            try:
                private_key = Path(comm.ssh_private_key_file).read_bytes()
                public_key = keys.public_openssh(keys.load_private_key(private_key))
            except OSError as e:
                return self.halt(state, CloudbakeError(f"Error reading 'ssh_private_key_file': {e}"))
            except ValueError as e:
                return self.halt(state, CloudbakeError(f"Error parsing 'ssh_private_key_file': {e}"))

            name = temporary_name()
            ui.say(f"Creating temporary keypair using provided private key: {name}...")
            try:
                created = state.compute.create_keypair(name, public_key=public_key)
            except ComputeError as e:
                return self.halt(state, ComputeError(f"Error creating temporary keypair: {e}"))
            state.keypair.id = name
            if not created.get("fingerprint"):
                return self.halt(state, ComputeError("The temporary keypair returned was blank"))

            state.private_key = private_key.decode()
            ui.say(f"Created temporary keypair: {name}")
            return StepAction.CONTINUE

        if comm.ssh_agent_auth:
            if comm.ssh_keypair_name:
                ui.say(f"Using SSH Agent for existing key pair {comm.ssh_keypair_name}")
            else:
                ui.say("Using SSH Agent with key pair in Source image")
            return StepAction.CONTINUE

        if not comm.ssh_temporary_key_pair_name:
            ui.say("Not using temporary keypair")
            return StepAction.CONTINUE

        name = comm.ssh_temporary_key_pair_name
        ui.say(f"Creating temporary keypair: {name}...")
        try:
            created = state.compute.create_keypair(name)
        except ComputeError as e:
            return self.halt(state, ComputeError(f"Error creating temporary keypair: {e}"))
        state.keypair.id = name
        if not created.get("private_key"):
            return self.halt(state, ComputeError("The temporary keypair returned was blank"))

        ui.say(f"Created temporary keypair: {name}")
        state.private_key = created["private_key"]

        if self.debug and self.debug_key_path:
            ui.message(f"Saving key for debug purposes: {self.debug_key_path}")
            try:
                self._save_debug_key(state.private_key)
            except OSError as e:
                return self.halt(state, CloudbakeError(f"Error saving debug key: {e}"))
        return StepAction.CONTINUE

    def _save_debug_key(self, private_key: str) -> None:
        path = Path(self.debug_key_path)
        path.write_text(private_key)
        if os.name != "nt":
            path.chmod(0o600)

    def cleanup(self, state: BuildState) -> None:
        handle = state.keypair
        if not handle.is_live:
            return

        ui = state.ui
        ui.say(f"Deleting temporary keypair: {handle.id} ...")
        try:
            state.compute.delete_keypair(handle.id)
        except KeyPairNotFoundError:
            pass
        except CloudbakeError as e:
            ui.error(
                f"Error cleaning up keypair {handle.id}. Please delete the key manually: {e}"
            )
            return
        handle.release()
