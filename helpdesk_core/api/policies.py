"""
Authorization policies and the gate evaluating them

A policy decides whether a principal may perform an ability on a
resource. The target of such a check is either a loaded model instance
or the model class itself, which is used for creating new resources
where no instance exists yet. The ``Gate`` resolves the policy of the
target's resource type and always answers with a plain boolean.
"""

from typing import Callable, Dict, List, Optional, Type, Union

from .base import Ability
from .. import schemas
from ..persistence import models


class Capability:
    """
    Names of the capabilities that may be granted to a principal
    """

    CREATE_TICKET = "ticket:create"
    UPDATE_TICKET = "ticket:update"
    REPLACE_TICKET = "ticket:replace"
    DELETE_TICKET = "ticket:delete"

    CREATE_OWN_TICKET = "ticket:own:create"
    UPDATE_OWN_TICKET = "ticket:own:update"
    DELETE_OWN_TICKET = "ticket:own:delete"

    CREATE_USER = "user:create"
    UPDATE_USER = "user:update"
    REPLACE_USER = "user:replace"
    DELETE_USER = "user:delete"


def get_capabilities(is_manager: bool) -> List[str]:
    """
    Return the capabilities granted to managers or to ordinary users, respectively
    """

    if is_manager:
        return [
            Capability.CREATE_TICKET,
            Capability.UPDATE_TICKET,
            Capability.REPLACE_TICKET,
            Capability.DELETE_TICKET,
            Capability.CREATE_USER,
            Capability.UPDATE_USER,
            Capability.REPLACE_USER,
            Capability.DELETE_USER
        ]
    return [
        Capability.CREATE_OWN_TICKET,
        Capability.UPDATE_OWN_TICKET,
        Capability.DELETE_OWN_TICKET
    ]


Target = Union[models.Base, Type[models.Base]]


class Policy:
    """
    Stateless decision function for all abilities on one resource type

    Subclasses set the ``model`` they are responsible for and override
    the methods named after the abilities. Everything that's not
    overridden is denied, except for listing and showing resources.
    """

    model: Optional[Type[models.Base]] = None

    def check(self, ability: Ability, principal: schemas.Principal, target: Target) -> bool:
        handlers: Dict[Ability, Callable[[schemas.Principal, Target], bool]] = {
            Ability.INDEX: self.index,
            Ability.SHOW: self.show,
            Ability.STORE: self.store,
            Ability.UPDATE: self.update,
            Ability.REPLACE: self.replace,
            Ability.DELETE: self.delete
        }
        return bool(handlers[Ability(ability)](principal, target))

    def index(self, principal: schemas.Principal, target: Target) -> bool:
        return True

    def show(self, principal: schemas.Principal, target: Target) -> bool:
        return True

    def store(self, principal: schemas.Principal, target: Target) -> bool:
        return False

    def update(self, principal: schemas.Principal, target: Target) -> bool:
        return False

    def replace(self, principal: schemas.Principal, target: Target) -> bool:
        return False

    def delete(self, principal: schemas.Principal, target: Target) -> bool:
        return False


class TicketPolicy(Policy):
    model = models.Ticket

    @staticmethod
    def _owns(principal: schemas.Principal, target: Target) -> bool:
        return isinstance(target, models.Ticket) and target.user_id == principal.id

    def store(self, principal: schemas.Principal, target: Target) -> bool:
        return principal.can(Capability.CREATE_TICKET) or principal.can(Capability.CREATE_OWN_TICKET)

    def update(self, principal: schemas.Principal, target: Target) -> bool:
        if principal.can(Capability.UPDATE_TICKET):
            return True
        return principal.can(Capability.UPDATE_OWN_TICKET) and self._owns(principal, target)

    def replace(self, principal: schemas.Principal, target: Target) -> bool:
        return principal.can(Capability.REPLACE_TICKET)

    def delete(self, principal: schemas.Principal, target: Target) -> bool:
        if principal.can(Capability.DELETE_TICKET):
            return True
        return principal.can(Capability.DELETE_OWN_TICKET) and self._owns(principal, target)


class UserPolicy(Policy):
    model = models.User

    def store(self, principal: schemas.Principal, target: Target) -> bool:
        return principal.can(Capability.CREATE_USER)

    def update(self, principal: schemas.Principal, target: Target) -> bool:
        return principal.can(Capability.UPDATE_USER)

    def replace(self, principal: schemas.Principal, target: Target) -> bool:
        return principal.can(Capability.REPLACE_USER)

    def delete(self, principal: schemas.Principal, target: Target) -> bool:
        return principal.can(Capability.DELETE_USER)


DEFAULT_POLICIES: Dict[Type[models.Base], Type[Policy]] = {
    models.Ticket: TicketPolicy,
    models.User: UserPolicy
}


class Gate:
    """
    Authorization gate answering whether a principal may perform an ability on a target

    The policy types are registered per resource type and can be swapped
    by passing another mapping to the constructor. Every check is made for
    a pair of the target and the policy type, where the policy type is
    looked up from the registry if it's not given explicitly.
    """

    def __init__(self, policies: Optional[Dict[Type[models.Base], Type[Policy]]] = None):
        self._policies = dict(DEFAULT_POLICIES if policies is None else policies)
        self._instances: Dict[Type[Policy], Policy] = {}

    def authorize(
            self,
            principal: schemas.Principal,
            ability: Ability,
            target: Target,
            policy_type: Optional[Type[Policy]] = None
    ) -> bool:
        """
        Check the ability of the principal on a model instance or a model class

        :param principal: the authenticated principal issuing the request
        :param ability: the ability that should be checked
        :param target: model instance or model class (for creating new instances)
        :param policy_type: optional policy type that overwrites the registered one
        :return: whether the policy allows the ability
        :raises TypeError: when the target is missing or doesn't match the policy
        :raises LookupError: when no policy has been registered for the target's type
        """

        target, policy_type = self.resolve(target, policy_type)
        return self._get_policy(policy_type).check(ability, principal, target)

    def resolve(self, target: Target, policy_type: Optional[Type[Policy]] = None):
        """
        Return the pair of the target and its policy type
        """

        if target is None:
            raise TypeError("Authorization requires a model instance or a model class as target")
        model = target if isinstance(target, type) else type(target)
        if policy_type is None:
            if model not in self._policies:
                raise LookupError(f"No policy registered for {model.__name__!r}")
            policy_type = self._policies[model]
        if policy_type.model is not None and not issubclass(model, policy_type.model):
            raise TypeError(f"{policy_type.__name__} can't be used for {model.__name__!r}")
        return target, policy_type

    def _get_policy(self, policy_type: Type[Policy]) -> Policy:
        if policy_type not in self._instances:
            self._instances[policy_type] = policy_type()
        return self._instances[policy_type]
