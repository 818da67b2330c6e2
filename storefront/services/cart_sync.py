# storefront/services/cart_sync.py
import logging
from typing import Sequence

from storefront.core.errors import AdvisoryLog, RemoteStoreError
from storefront.models.cart import CartLine, IdentityKey, ProductSnapshot, SavedLine, identity_key
from storefront.repositories.cart_repo import CartRepository
from storefront.repositories.local_store import LocalEphemeralStore
from storefront.services.remote_writes import RemoteWriteScheduler

logger = logging.getLogger(__name__)


def merge_carts(
    local: Sequence[CartLine],
    remote: Sequence[CartLine],
) -> tuple[list[CartLine], list[CartLine]]:
    """
    Fold a device cart into an account cart.

    Rules:
      - remote lines are kept as they are (remote wins on overlapping keys,
        quantities are never added together)
      - local lines whose identity key is not remote are appended

    Returns:
        (merged cart, local lines that must be inserted remotely)

    Merging the result again with an empty local cart returns it unchanged.
    """
    merged: list[CartLine] = []
    seen: set[IdentityKey] = set()

    for line in remote:
        if line.key in seen:
            continue
        seen.add(line.key)
        merged.append(line)

    missing: list[CartLine] = []
    for line in local:
        if line.key in seen:
            continue
        seen.add(line.key)
        merged.append(line)
        missing.append(line)

    return merged, missing


class CartSyncEngine:
    """
    Owner of the in-memory cart and saved-for-later lists.

    Responsibilities:
      - load the device cart for guests
      - merge device cart into the account cart once, on sign-in
      - apply every mutation to memory first, then mirror it
        (remote table when signed in and merged, device store otherwise)
      - derive totals on demand

    All methods except `attach_account` are synchronous; remote writes are
    handed to the RemoteWriteScheduler and never awaited here.
    """

    def __init__(
        self,
        local_store: LocalEphemeralStore,
        cart_repo: CartRepository,
        scheduler: RemoteWriteScheduler,
        advisories: AdvisoryLog,
        cart_key: str = "ecommerce-cart",
        saved_key: str = "ecommerce-saved",
    ):
        self.local_store = local_store
        self.cart_repo = cart_repo
        self.scheduler = scheduler
        self.advisories = advisories
        self.cart_key = cart_key
        self.saved_key = saved_key

        self.cart_lines: list[CartLine] = []
        self.saved_lines: list[SavedLine] = []
        self.account_id: str | None = None
        self.remote_synced = False
        self.is_syncing = False

    # ---- derived values ----

    @property
    def cart_total(self) -> float:
        return sum(line.line_total for line in self.cart_lines)

    @property
    def cart_count(self) -> int:
        return sum(line.quantity for line in self.cart_lines)

    @property
    def saved_count(self) -> int:
        return len(self.saved_lines)

    @property
    def is_authenticated(self) -> bool:
        return self.account_id is not None

    # ---- lifecycle ----

    def load(self) -> None:
        """Guest load: both lists come from the device store."""
        self.account_id = None
        self.remote_synced = False
        self.cart_lines = self.local_store.load(self.cart_key, CartLine)
        self.saved_lines = self.local_store.load(self.saved_key, SavedLine)

    async def attach_account(self, account_id: str) -> bool:
        """
        Merge-on-authentication.

        Steps:
          1. Read the device cart (L) and fetch the account cart (R).
          2. Insert every L line whose key is not in R remotely.
          3. Present R + inserted lines; clear the device cart key.

        On any remote failure the device cart is presented alone, the
        device store is left untouched (the merge is retried on the next
        sign-in) and mutations keep persisting to the device store.

        Returns:
            True if the merge completed.
        """
        local_cart = self.local_store.load(self.cart_key, CartLine)
        self.saved_lines = self.local_store.load(self.saved_key, SavedLine)
        self.account_id = account_id
        self.remote_synced = False
        self.is_syncing = True

        try:
            remote_cart = await self.cart_repo.list_for_account(account_id)
            merged, missing = merge_carts(local_cart, remote_cart)
            for line in missing:
                await self.cart_repo.insert_line(account_id, line)
        except RemoteStoreError as exc:
            logger.warning("Cart merge for %s failed: %s", account_id, exc)
            self.advisories.add(
                "cart",
                "Couldn't sync your cart. Showing the items saved on this device.",
            )
            self.cart_lines = local_cart
            return False
        finally:
            self.is_syncing = False

        logger.info(
            "Cart merged for %s: %d remote, %d uploaded",
            account_id,
            len(merged) - len(missing),
            len(missing),
        )
        self.cart_lines = merged
        self.remote_synced = True
        self.local_store.clear(self.cart_key)
        return True

    def detach_account(self) -> None:
        """Sign-out: fall back to whatever the device store holds."""
        self.load()

    # ---- internal helpers ----

    def _find(self, key: IdentityKey) -> CartLine | None:
        for line in self.cart_lines:
            if line.key == key:
                return line
        return None

    def _matching(
        self,
        product_id: str,
        size: str | None,
        color: str | None,
    ) -> list[CartLine]:
        # No variant given => every line of the product.
        if size is None and color is None:
            return [line for line in self.cart_lines if line.product_id == product_id]
        line = self._find(identity_key(product_id, size, color))
        return [line] if line else []

    @property
    def _mirrors_remotely(self) -> bool:
        return self.account_id is not None and self.remote_synced

    def _persist_cart(self) -> None:
        if not self._mirrors_remotely:
            self.local_store.save(self.cart_key, self.cart_lines)

    def _persist_saved(self) -> None:
        self.local_store.save(self.saved_key, self.saved_lines)

    def _mirror_upsert(self, line: CartLine) -> None:
        if not self._mirrors_remotely:
            return
        account_id = self.account_id
        # Snapshot: the write carries the quantity as of this mutation.
        issued = line.model_copy()
        self.scheduler.submit(
            ("cart", account_id, line.key),
            f"cart item {line.product_id}",
            lambda: self.cart_repo.upsert_line(account_id, issued),
        )

    def _mirror_delete(self, line: CartLine) -> None:
        if not self._mirrors_remotely:
            return
        account_id = self.account_id
        key = line.key
        self.scheduler.submit(
            ("cart", account_id, key),
            f"removal of {line.product_id}",
            lambda: self.cart_repo.delete_line(account_id, *key),
        )

    # ---- mutations ----

    def add_to_cart(
        self,
        product: ProductSnapshot,
        quantity: int = 1,
        size: str | None = None,
        color: str | None = None,
    ) -> CartLine:
        """
        Add `quantity` of a product configuration.

        An existing line with the same identity key is incremented;
        otherwise a new line is appended.
        """
        if quantity < 1:
            raise ValueError("quantity must be >= 1")

        key = identity_key(product.id, size, color)
        line = self._find(key)
        if line is not None:
            line.quantity += quantity
        else:
            line = CartLine(
                product=product,
                quantity=quantity,
                selected_size=key[1],
                selected_color=key[2],
            )
            self.cart_lines.append(line)

        self._persist_cart()
        self._mirror_upsert(line)
        return line

    def update_quantity(
        self,
        product_id: str,
        quantity: int,
        size: str | None = None,
        color: str | None = None,
    ) -> list[CartLine]:
        """
        Replace the quantity of matching lines.

        quantity <= 0 is a removal.
        """
        if quantity <= 0:
            self.remove_from_cart(product_id, size, color)
            return []

        lines = self._matching(product_id, size, color)
        for line in lines:
            line.quantity = quantity
            self._mirror_upsert(line)
        if lines:
            self._persist_cart()
        return lines

    def remove_from_cart(
        self,
        product_id: str,
        size: str | None = None,
        color: str | None = None,
    ) -> list[CartLine]:
        """
        Remove matching lines.

        Without a variant every line of the product goes; with one, only
        that identity key. Each removed line is deleted remotely by its own
        identity key.
        """
        removed = self._matching(product_id, size, color)
        if not removed:
            return []
        removed_keys = {line.key for line in removed}
        self.cart_lines = [line for line in self.cart_lines if line.key not in removed_keys]
        self._persist_cart()
        for line in removed:
            self._mirror_delete(line)
        return removed

    def save_for_later(self, product_id: str) -> SavedLine | None:
        lines = self._matching(product_id, None, None)
        if not lines:
            return None

        self.remove_from_cart(product_id)

        saved = next((s for s in self.saved_lines if s.product_id == product_id), None)
        if saved is None:
            saved = SavedLine(product=lines[0].product)
            self.saved_lines.append(saved)
            self._persist_saved()
        return saved

    def move_to_cart(self, product_id: str) -> CartLine | None:
        saved = next((s for s in self.saved_lines if s.product_id == product_id), None)
        if saved is None:
            return None
        self.saved_lines = [s for s in self.saved_lines if s.product_id != product_id]
        self._persist_saved()
        return self.add_to_cart(saved.product, 1)

    def remove_from_saved(self, product_id: str) -> bool:
        before = len(self.saved_lines)
        self.saved_lines = [s for s in self.saved_lines if s.product_id != product_id]
        if len(self.saved_lines) == before:
            return False
        self._persist_saved()
        return True

    def clear_cart(self) -> None:
        self.cart_lines = []
        self._persist_cart()
        if self._mirrors_remotely:
            account_id = self.account_id
            self.scheduler.submit(
                ("cart", account_id),
                "cart clear",
                lambda: self.cart_repo.clear_account(account_id),
            )
