def test_send_skips_self_and_unknown(make_user):
    alice, alice_user = make_user('alice')
    _, bob_user = make_user('bob')

    res = alice.post('/api/messages/send', json={
        'recipientIds': [bob_user['id'], alice_user['id'], 'ghost'],
        'content': '  hello  ',
    })
    assert res.status_code == 200
    data = res.get_json()
    assert data['count'] == 1
    message = data['messages'][0]
    assert message['recipientId'] == bob_user['id']
    assert message['content'] == 'hello'
    assert message['senderName'] == 'alice'


def test_send_skips_malformed_recipient_ids(make_user):
    alice, _ = make_user('alice')
    bob, bob_user = make_user('bob')

    res = alice.post('/api/messages/send', json={
        'recipientIds': [{'id': bob_user['id']}, [bob_user['id']], 42, None, bob_user['id']],
        'content': 'hey',
    })
    assert res.status_code == 200
    assert res.get_json()['count'] == 1
    assert bob.get('/api/messages/unread-count').get_json() == {'unreadCount': 1}


def test_send_validation(make_user):
    alice, _ = make_user('alice')
    assert alice.post('/api/messages/send', json={'recipientIds': [], 'content': 'x'}).status_code == 400
    assert alice.post('/api/messages/send', json={'recipientIds': 'bob', 'content': 'x'}).status_code == 400
    assert alice.post('/api/messages/send', json={'recipientIds': ['bob'], 'content': '   '}).status_code == 400


def test_conversation_list_and_read_tracking(make_user):
    alice, alice_user = make_user('alice')
    bob, bob_user = make_user('bob')
    cara, cara_user = make_user('cara')

    alice.post('/api/messages/send', json={'recipientIds': [bob_user['id']], 'content': 'one'})
    alice.post('/api/messages/send', json={'recipientIds': [bob_user['id']], 'content': 'two'})
    cara.post('/api/messages/send', json={'recipientIds': [bob_user['id']], 'content': 'from cara'})

    assert bob.get('/api/messages/unread-count').get_json() == {'unreadCount': 3}

    conversations = bob.get('/api/messages/list').get_json()['conversations']
    assert [c['userId'] for c in conversations] == [cara_user['id'], alice_user['id']]
    assert conversations[1]['lastMessage'] == 'two'
    assert conversations[1]['unreadCount'] == 2

    thread = bob.get(f"/api/messages/conversation/{alice_user['id']}").get_json()
    assert [m['content'] for m in thread['messages']] == ['two', 'one']
    assert all(m['isRead'] is False and m['isOwn'] is False for m in thread['messages'])
    assert thread['otherUser']['name'] == 'alice'

    # Opening the thread marked it read
    again = bob.get(f"/api/messages/conversation/{alice_user['id']}").get_json()
    assert all(m['isRead'] for m in again['messages'])
    assert bob.get('/api/messages/unread-count').get_json() == {'unreadCount': 1}

    # The sender sees their own messages
    own = alice.get(f"/api/messages/conversation/{bob_user['id']}").get_json()
    assert all(m['isOwn'] for m in own['messages'])
    assert alice.get('/api/messages/unread-count').get_json() == {'unreadCount': 0}
