from enum import Enum
from typing import Dict, Optional


class Action(str, Enum):
    NONE = "none"
    CREATE = "create"
    DELETE = "delete"
    START = "start"
    STOP = "stop"
    UPDATE = "update"
    ATTACH = "attach"
    CHECK = "check"
    DETACH = "detach"

    def __str__(self) -> str:
        return self.value


class Entity(str, Enum):
    NONE = "none"
    VPC = "vpc"
    SUBNET = "subnet"
    INSTANCE = "instance"
    VOLUME = "volume"
    TAG = "tag"
    USER = "user"
    GROUP = "group"
    ROLE = "role"
    POLICY = "policy"
    KEYPAIR = "keypair"
    SECURITYGROUP = "securitygroup"
    INTERNETGATEWAY = "internetgateway"
    ROUTETABLE = "routetable"
    ROUTE = "route"
    BUCKET = "bucket"
    STORAGEOBJECT = "storageobject"
    SUBSCRIPTION = "subscription"
    TOPIC = "topic"
    QUEUE = "queue"
    LOADBALANCER = "loadbalancer"
    LISTENER = "listener"

    def __str__(self) -> str:
        return self.value


ACTIONS = {action.value: action for action in Action}
ENTITIES = {entity.value: entity for entity in Entity}

# executed action -> action undoing it; delete, update, check and none have no inverse
INVERSE_ACTIONS: Dict[Action, Action] = {
    Action.CREATE: Action.DELETE,
    Action.START: Action.STOP,
    Action.STOP: Action.START,
    Action.ATTACH: Action.DETACH,
    Action.DETACH: Action.ATTACH,
}

# entities whose creation yields no identifier; their revert reuses the creation parameters
ENTITIES_DELETED_BY_PARAMS = {Entity.TAG, Entity.ROUTE}


def lookup_action(name: str) -> Optional[Action]:
    return ACTIONS.get(name)


def lookup_entity(name: str) -> Optional[Entity]:
    return ENTITIES.get(name)


def inverse_action(action: Action) -> Optional[Action]:
    """
    Returns the action that undoes the given action, or None if the action cannot be reverted.

    :param action: the executed action
    :return: the inverse action, or None
    """
    return INVERSE_ACTIONS.get(action)
