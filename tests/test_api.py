from dataclasses import replace

from fastapi.testclient import TestClient

from conftest import CONTRACT_ADDRESS, TX_HASH, WALLET, make_receipt
from main import create_app
from models import Game, Mint, Photo, User


def test_health(client):
    res = client.get('/')
    assert res.status_code == 200
    assert res.json()['status'] == 'ok'


def test_sign_then_submit_end_to_end(client, receipt_client, session, validator_address):
    res = client.post('/api/sign-score', json={'gameId': 'abc-123', 'score': 3500, 'player': WALLET})
    assert res.status_code == 200
    signed = res.json()
    assert signed['signature'].startswith('0x')
    assert len(signed['signature']) == 132
    assert signed['validatorAddress'] == validator_address

    receipt_client.outcomes.append(make_receipt(to=CONTRACT_ADDRESS, sender=WALLET.lower()))
    res = client.post('/api/score', json={
        'gameId': 'abc-123',
        'score': 3500,
        'txHash': TX_HASH,
        'wallet': WALLET,
        'rounds': [{'photoId': 1, 'yearGuess': 1960, 'yearTrue': 1961, 'delta': 1, 'score': 990}],
        'farcaster': {'fid': 3, 'username': 'dwr', 'displayName': 'Dan', 'pfpUrl': None},
    })
    assert res.status_code == 200
    assert res.json() == {'ok': True}

    game = session.get(Game, 'abc-123')
    assert game.canonical_user_id == WALLET.lower()
    assert game.total_score == 3500
    assert session.get(User, WALLET.lower()).display_name == 'Dan'


def test_sign_score_rejects_out_of_range(client):
    res = client.post('/api/sign-score', json={'gameId': 'abc-123', 'score': 5001, 'player': WALLET})
    assert res.status_code == 400
    assert 'score' in res.json()['error']


def test_sign_score_rejects_bad_player(client):
    res = client.post('/api/sign-score', json={'gameId': 'abc-123', 'score': 10, 'player': '0xnope'})
    assert res.status_code == 400
    assert 'error' in res.json()


def test_sign_score_rejects_wrong_types(client):
    res = client.post('/api/sign-score', json={'gameId': 123, 'score': 'lots', 'player': WALLET})
    assert res.status_code == 400
    error = res.json()['error']
    assert 'gameId' in error
    assert 'score' in error


def test_sign_score_without_key(settings, receipt_client):
    unconfigured = replace(settings, validator_private_key=None)
    client = TestClient(create_app(unconfigured, receipt_client=receipt_client))
    res = client.post('/api/sign-score', json={'gameId': 'abc-123', 'score': 10, 'player': WALLET})
    assert res.status_code == 500
    assert 'VALIDATOR_PRIVATE_KEY' in res.json()['error']


def test_submit_mismatch_returns_error_and_no_rows(client, receipt_client, session):
    receipt_client.outcomes.append(make_receipt(sender='0x' + '12' * 20))
    res = client.post('/api/score', json={'gameId': 'g-1', 'score': 100, 'txHash': TX_HASH, 'wallet': WALLET})
    assert res.status_code == 400
    assert res.json() == {'error': 'Wallet does not match transaction sender.'}
    assert session.query(Game).count() == 0


def test_submit_missing_fields(client):
    res = client.post('/api/score', json={'gameId': 'g-1', 'score': 100})
    assert res.status_code == 400
    assert res.json() == {'error': 'Missing gameId, score, txHash, or wallet.'}


def test_submit_invalid_wallet(client):
    res = client.post('/api/score', json={'gameId': 'g-1', 'score': 100, 'txHash': TX_HASH, 'wallet': '0x42'})
    assert res.status_code == 400
    assert res.json() == {'error': 'Invalid wallet address.'}


def test_submit_degraded_mode(client, receipt_client, session):
    receipt_client.outcomes.extend([ConnectionError('rpc down')] * 3)
    res = client.post('/api/score', json={'gameId': 'g-2', 'score': 100, 'txHash': TX_HASH, 'wallet': WALLET})
    assert res.status_code == 200
    assert len(receipt_client.calls) == 3
    assert session.query(Mint).filter_by(game_id='g-2').one().status == 'unconfirmed'


def test_duplicate_game_conflicts(client, receipt_client, session):
    body = {'gameId': 'g-3', 'score': 100, 'txHash': TX_HASH, 'wallet': WALLET}
    receipt_client.outcomes.extend([make_receipt(), make_receipt()])
    assert client.post('/api/score', json=body).status_code == 200
    res = client.post('/api/score', json=body)
    assert res.status_code == 409
    assert 'g-3' in res.json()['error']
    assert session.query(Game).filter_by(id='g-3').count() == 1


def test_leaderboards(client, receipt_client):
    other = '0x' + '0b' * 20
    games = [
        ('g-a', 4200, WALLET, [(1950, 1952), (1980, 1990)]),
        ('g-b', 1000, WALLET, [(1900, 1950)]),
        ('g-c', 3900, other, [(2000, 2001)]),
    ]
    for n, (game_id, score, wallet, rounds) in enumerate(games):
        receipt_client.outcomes.append(make_receipt(sender=wallet))
        res = client.post('/api/score', json={
            'gameId': game_id,
            'score': score,
            'txHash': '0x' + f'{n:064x}',
            'wallet': wallet,
            'rounds': [{'yearGuess': g, 'yearTrue': t} for g, t in rounds],
        })
        assert res.status_code == 200

    top = client.get('/api/leaderboard').json()['leaderboard']
    assert [row['canonical_user_id'] for row in top] == [WALLET.lower(), other]
    assert top[0]['score'] == 4200

    accuracy = client.get('/api/leaderboard', params={'type': 'best_accuracy'}).json()['leaderboard']
    assert accuracy[0]['canonical_user_id'] == other
    assert accuracy[0]['avg_delta'] == 1.0
    assert accuracy[1]['avg_delta'] == round((2 + 10 + 50) / 3, 2)

    limited = client.get('/api/leaderboard', params={'limit': '1'}).json()['leaderboard']
    assert len(limited) == 1


def test_photos(client, session):
    session.add_all([
        Photo(image_url='https://example.com/1.jpg', title='Harbour', year_true=1931, year_min=1900, year_max=2000),
        Photo(image_url='https://example.com/2.jpg', title=None, year_true=1968),
    ])
    session.commit()

    photos = client.get('/api/photos').json()['photos']
    assert [p['year_true'] for p in photos] == [1931, 1968]
    assert photos[0]['title'] == 'Harbour'
    assert photos[1]['year_min'] is None


def test_webhook_acknowledges_anything(client):
    assert client.post('/api/webhook', json={'event': 'frame_added'}).json() == {'success': True}
    assert client.post('/api/webhook', content=b'not json').json() == {'success': True}
    assert client.get('/api/webhook').json() == {'status': 'ok'}


def test_mint_transaction_backs_only_one_game(client, receipt_client, session):
    receipt_client.outcomes.extend([make_receipt(), make_receipt()])
    first = {'gameId': 'real', 'score': 10, 'txHash': TX_HASH, 'wallet': WALLET}
    assert client.post('/api/score', json=first).status_code == 200

    res = client.post('/api/score', json={**first, 'gameId': 'forged', 'score': 5000})
    assert res.status_code == 409
    assert 'already been used' in res.json()['error']
    assert session.query(Game).count() == 1
    assert session.get(Game, 'forged') is None


def test_submit_rejects_huge_score(client, receipt_client, session):
    res = client.post('/api/score', json={'gameId': 'g-4', 'score': 1e300, 'txHash': TX_HASH, 'wallet': WALLET})
    assert res.status_code == 400
    assert 'score' in res.json()['error']
    assert receipt_client.calls == []
    assert session.query(Game).count() == 0


def test_submit_rejects_nan_score(client, receipt_client):
    body = '{"gameId": "g-5", "score": NaN, "txHash": "%s", "wallet": "%s"}' % (TX_HASH, WALLET)
    res = client.post('/api/score', content=body, headers={'Content-Type': 'application/json'})
    assert res.status_code == 400
    assert 'score' in res.json()['error']
    assert receipt_client.calls == []


def test_malformed_json_body(client):
    res = client.post('/api/score', content=b'{"gameId": "g-6", ', headers={'Content-Type': 'application/json'})
    assert res.status_code == 400
    assert res.json() == {'error': 'Invalid request body.'}
