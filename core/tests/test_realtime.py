import pytest
from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from channels.testing import WebsocketCommunicator

from core.models import BillingAccount
from core.realtime.consumers import UpdatesConsumer
from core.services.billing import review
from core.services.contracts import change_state
from core.services.realtime import GROUP


@pytest.fixture
def updates_channel():
    layer = get_channel_layer()
    name = async_to_sync(layer.new_channel)()
    async_to_sync(layer.group_add)(GROUP, name)
    yield layer, name
    async_to_sync(layer.flush)()


def _receive(layer, name):
    return async_to_sync(layer.receive)(name)


@pytest.mark.django_db
def test_state_change_is_broadcast(updates_channel, supervisor, contract):
    layer, name = updates_channel
    change_state(supervisor, contract, 'completed')
    event = _receive(layer, name)
    assert event['type'] == 'broadcast.refresh'
    assert event['entity'] == 'contract'
    assert event['id'] == contract.id
    assert event['status'] == 'completed'
    assert event['ts']


@pytest.mark.django_db
def test_review_is_broadcast(updates_channel, supervisor, account):
    layer, name = updates_channel
    BillingAccount.objects.filter(pk=account.pk).update(status=BillingAccount.STATUS_PENDING)
    account.refresh_from_db()
    review(supervisor, account, 'approve')
    event = _receive(layer, name)
    assert (event['entity'], event['id'], event['status']) == ('billing_account', account.id, 'approved')


@pytest.mark.django_db
def test_consumer_forwards_group_events():
    async def run():
        communicator = WebsocketCommunicator(UpdatesConsumer.as_asgi(), '/ws/updates/')
        connected, _ = await communicator.connect()
        assert connected
        assert (await communicator.receive_json_from())['type'] == 'welcome'
        await get_channel_layer().group_send(GROUP, {
            'type': 'broadcast.refresh', 'entity': 'contract', 'id': 7, 'status': 'cancelled', 'ts': 'now',
        })
        event = await communicator.receive_json_from()
        await communicator.disconnect()
        return event

    event = async_to_sync(run)()
    assert event == {'type': 'broadcast.refresh', 'entity': 'contract', 'id': 7, 'status': 'cancelled', 'ts': 'now'}
