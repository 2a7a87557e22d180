"""Container Locator - find the slot currently holding a container."""
from app.services.yard.errors import ContainerBlocked, ContainerNotFound
from app.services.yard.snapshot import Slot, YardSnapshot


def locate(snapshot: YardSnapshot, container_id: str) -> Slot:
    """
    Return the occupied slot holding ``container_id``.

    Container ids are unique across the yard by construction; if that ever
    breaks, the first slot in (yard, block, bay, row, tier) order wins.

    Raises:
        ContainerNotFound: the id is not in the yard
    """
    slot = snapshot.find_container(container_id)
    if slot is None:
        raise ContainerNotFound(
            "Container Not Found in Yard",
            details={"container_id": container_id},
        )
    return slot


def is_retrievable(snapshot: YardSnapshot, slot: Slot) -> bool:
    """A container can be lifted out only when nothing sits on top of it."""
    above = snapshot.slot_above(slot)
    return above is None or above.is_empty


def locate_for_retrieval(snapshot: YardSnapshot, container_id: str) -> Slot:
    """
    Locate a container for pick-up.

    Raises:
        ContainerNotFound: the id is not in the yard
        ContainerBlocked: another container is stacked on it
    """
    slot = locate(snapshot, container_id)
    if not is_retrievable(snapshot, slot):
        above = snapshot.slot_above(slot)
        raise ContainerBlocked(
            f"Container {container_id} at {slot.key} is under {above.container_id}",
            details={"container_id": container_id, "blocked_by": above.container_id},
        )
    return slot
