"""
While tech preview features are enabled the operator must not be upgraded by
OLM. Upgrades are blocked through the Upgradeable condition of the operator's
OperatorCondition object.
"""

# Standard
from datetime import datetime, timezone
from typing import Optional
import copy
import os

# First Party
import alog

# Local
from .. import config, constants
from ..client import ClientBase
from ..exceptions import assert_config
from ..status import TIMESTAMP_KEY, ConditionStatus, get_condition

log = alog.use_channel("UPGRD")

# Written by kubernetes into every pod with a service account
SERVICE_ACCOUNT_NAMESPACE_FILE = (
    "/var/run/secrets/kubernetes.io/serviceaccount/namespace"
)


def operator_namespace() -> Optional[str]:
    """The configured operator namespace, else the namespace of the pod the
    operator runs in
    """
    if config.operator_namespace:
        return config.operator_namespace
    if os.path.exists(SERVICE_ACCOUNT_NAMESPACE_FILE):
        with open(SERVICE_ACCOUNT_NAMESPACE_FILE, encoding="utf-8") as handle:
            return handle.read().strip() or None
    return None


class UpgradeableCondition:
    """The Upgradeable condition on a single OperatorCondition object"""

    def __init__(self, client: ClientBase, name: str, namespace: str):
        self.client = client
        self.name = name
        self.namespace = namespace

    @classmethod
    def in_cluster(cls, client: ClientBase) -> "UpgradeableCondition":
        """The condition of the OperatorCondition OLM created for this operator.
        Its name comes from the operator_condition_name config, which OLM sets
        through the OPERATOR_CONDITION_NAME environment variable.
        """
        name = config.operator_condition_name
        assert_config(
            bool(name),
            "could not determine operator condition name: "
            "OPERATOR_CONDITION_NAME is not set",
        )
        namespace = operator_namespace()
        assert_config(bool(namespace), "could not determine operator namespace")
        return cls(client, name, namespace)

    def __str__(self):
        return f"{constants.OPERATOR_CONDITION_KIND}/{self.namespace}/{self.name}"

    def get(self) -> dict:
        """Fetch the current condition. The status OLM reports wins over the
        spec the operator writes. A condition found in neither is empty.
        """
        content = self._fetch()
        return get_condition(
            constants.UPGRADEABLE_CONDITION, content.get("status")
        ) or get_condition(constants.UPGRADEABLE_CONDITION, content.get("spec"))

    def set(self, status: ConditionStatus, reason: str, message: str):
        """Write the condition into spec.conditions. The lastTransitionTime only
        moves when the status value changes.
        """
        new_condition = {
            "type": constants.UPGRADEABLE_CONDITION,
            "status": status.value,
            "reason": reason,
            "message": message,
        }

        def set_condition(content: dict):
            spec = content.setdefault("spec", {})
            conditions = spec.setdefault("conditions", [])
            existing = get_condition(constants.UPGRADEABLE_CONDITION, spec)
            condition = copy.deepcopy(new_condition)
            if existing and existing.get("status") == status.value:
                condition[TIMESTAMP_KEY] = existing.get(TIMESTAMP_KEY)
            else:
                condition[TIMESTAMP_KEY] = datetime.now(timezone.utc).strftime(
                    "%Y-%m-%dT%H:%M:%SZ"
                )
            if existing:
                conditions[conditions.index(existing)] = condition
            else:
                conditions.append(condition)

        log.debug2("Setting %s on %s to %s", new_condition["type"], self, status)
        self.client.update_with_retry(self._fetch(), mutate=set_condition)

    def _fetch(self) -> dict:
        return self.client.get(
            kind=constants.OPERATOR_CONDITION_KIND,
            name=self.name,
            namespace=self.namespace,
            api_version=constants.OPERATOR_CONDITION_API_VERSION,
        )


def ensure_no_upgrade(condition: UpgradeableCondition) -> bool:
    """Set Upgradeable=False for the tech preview features, unless upgrades are
    already blocked

    Returns:
        written:  bool
            True if the condition was written
    """
    current = condition.get()
    is_false = current.get("status") == ConditionStatus.FALSE.value
    reason = current.get("reason")

    if is_false and reason != constants.TECH_PREVIEW_NO_UPGRADE_REASON:
        log.debug2("Upgrades already blocked on %s for %s", condition, reason)
        return False
    if (
        is_false
        and reason == constants.TECH_PREVIEW_NO_UPGRADE_REASON
        and current.get("message") == constants.TECH_PREVIEW_NO_UPGRADE_MESSAGE
    ):
        log.debug3("Upgrades already blocked on %s", condition)
        return False

    log.info("Blocking upgrades on %s for tech preview features", condition)
    condition.set(
        ConditionStatus.FALSE,
        constants.TECH_PREVIEW_NO_UPGRADE_REASON,
        constants.TECH_PREVIEW_NO_UPGRADE_MESSAGE,
    )
    return True
