import logging
from typing import Any, Callable, Dict, Iterable, NamedTuple, Union

from stackscript.template.errors import DriverNotFoundError
from stackscript.template.models import Action, Entity

LOG = logging.getLogger(__name__)

# a driver performs one action on one entity type, given the resolved (native) parameters
Driver = Callable[[Dict[str, Any]], Any]


class DriverKey(NamedTuple):
    entity: Entity
    action: Action


class DriverRegistry:
    """
    Maps ``(entity, action)`` pairs to the drivers performing them. Every pair can have a real driver and a dry run
    counterpart, which must not have any lasting effect.
    """

    def __init__(self):
        self._drivers: Dict[DriverKey, Driver] = {}
        self._dry_run_drivers: Dict[DriverKey, Driver] = {}

    def register(
        self,
        entity: Union[Entity, str],
        action: Union[Action, str],
        driver: Driver,
        dry_run: bool = False,
    ) -> None:
        key = DriverKey(Entity(entity), Action(action))
        drivers = self._dry_run_drivers if dry_run else self._drivers
        if key in drivers:
            kind = "dry run driver" if dry_run else "driver"
            LOG.debug("Replacing %s for '%s %s'", kind, key.action, key.entity)
        drivers[key] = driver

    def lookup(
        self, entity: Union[Entity, str], action: Union[Action, str], dry_run: bool = False
    ) -> Driver:
        """
        Returns the driver for the given entity and action.

        :raises DriverNotFoundError: if no such driver is registered
        """
        key = DriverKey(Entity(entity), Action(action))
        drivers = self._dry_run_drivers if dry_run else self._drivers
        driver = drivers.get(key)
        if driver is None:
            raise DriverNotFoundError(key.action, key.entity, dry_run=dry_run)
        return driver

    def __contains__(self, key: DriverKey) -> bool:
        return DriverKey(Entity(key[0]), Action(key[1])) in self._drivers

    def keys(self, dry_run: bool = False) -> Iterable[DriverKey]:
        drivers = self._dry_run_drivers if dry_run else self._drivers
        return sorted(drivers.keys(), key=lambda k: (k.entity.value, k.action.value))
