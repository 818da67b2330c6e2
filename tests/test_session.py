"""
Tests for StorefrontSession account transitions.
"""

from storefront.models.cart import CartLine

from conftest import ALICE, BOB, make_product, make_record


class TestAccountTransitions:
    async def test_init_as_guest_loads_device_cart(self, storefront, local_store):
        local_store.save(storefront.cart.cart_key, [CartLine(product=make_product("P1"), quantity=2)])

        await storefront.init()

        assert storefront.account_id is None
        assert [line.product_id for line in storefront.cart.cart_lines] == ["P1"]
        assert storefront.inbox.subscribed is False

    async def test_sign_in_merges_and_subscribes(self, storefront, cart_repo, notification_repo):
        await storefront.init()
        storefront.cart.add_to_cart(make_product("P1"), 1)
        notification_repo.rows = [make_record("n1")]

        await storefront.set_account(ALICE)

        assert storefront.account_id == ALICE
        assert [line.product_id for line in cart_repo.lines(ALICE)] == ["P1"]
        assert [r.id for r in storefront.inbox.records] == ["n1"]
        assert storefront.inbox.subscribed is True

    async def test_same_account_does_not_remerge(self, storefront, cart_repo, notification_repo):
        await storefront.init()
        await storefront.set_account(ALICE)
        await storefront.set_account(ALICE)

        assert cart_repo.calls.count(("list", ALICE)) == 1
        assert len(notification_repo.subscriptions) == 1

    async def test_same_account_retries_failed_merge(self, storefront, cart_repo):
        await storefront.init()
        storefront.cart.add_to_cart(make_product("P1"), 1)
        cart_repo.fail_list = True
        await storefront.set_account(ALICE)
        assert storefront.cart.remote_synced is False

        cart_repo.fail_list = False
        await storefront.set_account(ALICE)

        assert cart_repo.calls.count(("list", ALICE)) == 2
        assert storefront.cart.remote_synced is True
        assert [line.product_id for line in cart_repo.lines(ALICE)] == ["P1"]

    async def test_same_account_resubscribes_after_failure(self, storefront, notification_repo):
        notification_repo.fail_subscribe = True
        await storefront.init(ALICE)
        assert storefront.inbox.subscribed is False

        notification_repo.fail_subscribe = False
        await storefront.set_account(ALICE)

        assert storefront.inbox.subscribed is True
        assert len(notification_repo.subscriptions) == 1

    async def test_sign_out_releases_channel(self, storefront, notification_repo):
        await storefront.init(ALICE)

        await storefront.set_account(None)

        assert storefront.account_id is None
        assert storefront.cart.cart_lines == []
        assert notification_repo.subscriptions[0].release_calls == 1

    async def test_switch_accounts(self, storefront, cart_repo, notification_repo):
        cart_repo.seed(BOB, CartLine(product=make_product("B1"), quantity=1))
        await storefront.init(ALICE)

        await storefront.set_account(BOB)

        assert [line.product_id for line in storefront.cart.cart_lines] == ["B1"]
        first, second = notification_repo.subscriptions
        assert (first.account_id, first.release_calls) == (ALICE, 1)
        assert (second.account_id, second.active) == (BOB, True)

    async def test_authorize_sees_token_on_every_call(self, storefront):
        tokens = []

        async def authorize(token):
            tokens.append(token)

        storefront.authorize = authorize
        await storefront.init(ALICE, "tok-1")
        await storefront.set_account(ALICE, "tok-2")
        await storefront.set_account(None)

        assert tokens == ["tok-1", "tok-2", None]

    async def test_dispose_drains_writes_and_releases(self, storefront, cart_repo, notification_repo):
        await storefront.init(ALICE)
        cart_repo.write_delays = [0.02]
        storefront.cart.add_to_cart(make_product("P1"), 1)

        await storefront.dispose()

        assert len(cart_repo.lines(ALICE)) == 1
        assert notification_repo.subscriptions[0].release_calls == 1
