import unittest
from datetime import datetime, timedelta, timezone
from legacy_guard.bitcoin_integration import BitcoinKey
from legacy_guard.charms.prover import MockSpellProver
from legacy_guard.config import DEFAULT_APP_VK, LegacyGuardConfig
from legacy_guard.history import TransactionHistoryProvider
from legacy_guard.service import VaultService
from web_interface.app import create_app

OWNER_ADDRESS = "tb1qowner0000000000000000000000000000000000"
HEIR_ADDRESS = "tb1qheir00000000000000000000000000000000000"
STRANGER_ADDRESS = "tb1qstranger000000000000000000000000000000"


class StaticHistory(TransactionHistoryProvider):

    def __init__(self, transactions_by_address):
        self.transactions_by_address = transactions_by_address

    def fetch_transactions(self, address):
        return self.transactions_by_address.get(address, [])


class TestVaultApi(unittest.TestCase):

    def setUp(self):
        """Set up test fixtures"""
        self.now = datetime(2025, 1, 1, tzinfo=timezone.utc)
        self.owner_key = BitcoinKey()
        self.heir_key = BitcoinKey()

        config = LegacyGuardConfig.testnet()
        history = StaticHistory({
            OWNER_ADDRESS: [{
                'txid': "aa" * 32,
                'vin': [{'inner_witnessscript_asm': f"OP_PUSHBYTES_32 {self.owner_key.get_x_only_hex()} OP_CHECKSIG"}],
            }],
        })
        self.service = VaultService(config=config, history_provider=history,
                                    prover=MockSpellProver(config), clock=lambda: self.now)
        self.service.start()
        self.client = create_app(self.service).test_client()

    def tearDown(self):
        self.service.stop()

    def vault_body(self, **overrides):
        body = {
            'txId': "aa" * 32,
            'ownerAddress': OWNER_ADDRESS,
            'ownerPubkey': self.owner_key.get_public_key_hex(),
            'nomineeAddress': HEIR_ADDRESS,
            'nomineePubkey': self.heir_key.get_public_key_hex(),
            'lockedAmountSatoshis': 100_000,
            'inactivityTimeout': "60-seconds",
        }
        body.update(overrides)
        return body

    def create_vault(self, **overrides):
        response = self.client.post('/api/vaults', json=self.vault_body(**overrides))
        self.assertEqual(response.status_code, 201)
        return response.get_json()['vault']

    def claim(self, vault_id, heir_address=HEIR_ADDRESS, claim_tx_id="ee" * 32):
        return self.client.post(f'/api/vaults/{vault_id}/claim',
                                json={'heirAddress': heir_address, 'claimTxId': claim_tx_id})

    def test_create_vault(self):
        vault = self.create_vault()
        self.assertEqual(vault['status'], "ACTIVE")
        self.assertEqual(vault['nominee_pubkey'], self.heir_key.get_x_only_hex())
        self.assertEqual(vault['app_verification_key'], DEFAULT_APP_VK)

        response = self.client.get(f"/api/vaults/{vault['id']}")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()['vault']['tx_id'], "aa" * 32)

    def test_create_vault_errors(self):
        self.create_vault()
        response = self.client.post('/api/vaults', json=self.vault_body())
        self.assertEqual(response.status_code, 409)
        self.assertFalse(response.get_json()['success'])

        response = self.client.post('/api/vaults', json=self.vault_body(txId="bb" * 32, ownerPubkey=None))
        self.assertEqual(response.status_code, 400)
        self.assertIn("owner_pubkey", response.get_json()['error'])

        response = self.client.post('/api/vaults', json=self.vault_body(
            txId="bb" * 32, nomineeAddress="nowhere", lockedAmountSatoshis=0))
        self.assertEqual(response.status_code, 400)
        self.assertEqual(len(response.get_json()['errors']), 2)

        response = self.client.post('/api/vaults', data="not json", content_type="text/plain")
        self.assertEqual(response.status_code, 400)

    def test_list_vaults(self):
        vault = self.create_vault()

        response = self.client.get('/api/vaults', query_string={'address': HEIR_ADDRESS, 'status': "CLAIMABLE"})
        self.assertEqual(response.get_json()['count'], 0)

        self.now += timedelta(seconds=61)
        response = self.client.get('/api/vaults', query_string={'address': HEIR_ADDRESS, 'status': "CLAIMABLE"})
        body = response.get_json()
        self.assertEqual(body['count'], 1)
        self.assertEqual(body['vaults'][0]['id'], vault['id'])

    def test_list_vaults_errors(self):
        self.assertEqual(self.client.get('/api/vaults').status_code, 400)
        response = self.client.get('/api/vaults', query_string={'address': HEIR_ADDRESS, 'status': "LOST"})
        self.assertEqual(response.status_code, 400)

    def test_claim_flow(self):
        vault = self.create_vault()

        response = self.claim(vault['id'])
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.get_json()['error'], "Vault is ACTIVE and cannot be claimed")

        self.now += timedelta(seconds=61)
        response = self.claim(vault['id'], heir_address=STRANGER_ADDRESS)
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.get_json()['error'], "Unauthorized: You are not the heir for this vault")

        response = self.claim(vault['id'])
        self.assertEqual(response.status_code, 200)
        body = response.get_json()
        self.assertEqual(body['message'], "Vault claimed successfully")
        self.assertEqual(body['vault']['status'], "CLAIMED")
        self.assertEqual(body['vault']['claimed_tx_id'], "ee" * 32)

        self.assertEqual(self.claim(vault['id'], claim_tx_id="ff" * 32).status_code, 409)

    def test_claim_errors(self):
        self.assertEqual(self.claim("missing").status_code, 404)
        self.assertEqual(self.client.get('/api/vaults/missing').status_code, 404)

        vault = self.create_vault()
        response = self.client.post(f"/api/vaults/{vault['id']}/claim", json={'heirAddress': HEIR_ADDRESS})
        self.assertEqual(response.status_code, 400)

    def test_claim_rejects_non_string_fields(self):
        vault = self.create_vault()
        self.now += timedelta(seconds=61)

        response = self.claim(vault['id'], heir_address=12345, claim_tx_id="tx")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()['error'], "heirAddress and claimTxId must be strings")

        response = self.claim(vault['id'], claim_tx_id={'x': 1})
        self.assertEqual(response.status_code, 400)

        stored = self.client.get(f"/api/vaults/{vault['id']}").get_json()['vault']
        self.assertEqual(stored['status'], "CLAIMABLE")
        self.assertIsNone(stored['claimed_tx_id'])

    def test_create_vault_rejects_non_string_fields(self):
        response = self.client.post('/api/vaults', json=self.vault_body(txId=42, spell="version: 1"))
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()['error'], "Fields must be strings: tx_id")

        response = self.client.post('/api/vaults', json=self.vault_body(ownerAddress=["tb1q"], spell={'v': 1}))
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()['error'], "Fields must be strings: owner_address, spell")

        response = self.client.get('/api/vaults', query_string={'address': HEIR_ADDRESS})
        self.assertEqual(response.get_json()['count'], 0)

    def test_get_vault_remaining_time(self):
        vault = self.create_vault()

        self.now += timedelta(seconds=45)
        body = self.client.get(f"/api/vaults/{vault['id']}").get_json()
        self.assertEqual(body['remaining_milliseconds'], 15_000)

        self.now += timedelta(seconds=16)
        body = self.client.get(f"/api/vaults/{vault['id']}").get_json()
        self.assertEqual(body['vault']['status'], "CLAIMABLE")
        self.assertEqual(body['remaining_milliseconds'], 0)

    def test_vault_spell(self):
        vault = self.create_vault()
        url = f"/api/vaults/{vault['id']}/spell"

        response = self.client.post(url, json={'action': "Pulse", 'vaultUtxo': "cc" * 32 + ":1"})
        self.assertEqual(response.status_code, 200)
        body = response.get_json()
        self.assertEqual(body['action'], "Pulse")
        self.assertIn(f'  - utxo: "{"cc" * 32}:1"', body['spell'])
        self.assertIn("action: Pulse", body['spell'])

        response = self.client.post(url, json={'action': "Claim", 'vaultUtxo': "cc" * 32})
        self.assertEqual(response.status_code, 200)
        self.assertIn(f'  - address: "{HEIR_ADDRESS}"', response.get_json()['spell'])

        response = self.client.post(url, json={'action': "Burn", 'vaultUtxo': "cc" * 32})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()['error'], "Invalid action. Must be Initialize, Pulse, or Claim")

        self.assertEqual(self.client.post(url, json={'action': "Pulse"}).status_code, 400)
        self.assertEqual(self.client.post('/api/vaults/missing/spell',
                                          json={'action': "Pulse", 'vaultUtxo': "cc" * 32}).status_code, 404)

        self.now += timedelta(seconds=61)
        self.assertEqual(self.claim(vault['id']).status_code, 200)
        response = self.client.post(url, json={'action': "Claim", 'vaultUtxo': "cc" * 32})
        self.assertEqual(response.status_code, 400)

    def test_create_spell(self):
        body = {
            'ownerPubkey': self.owner_key.get_x_only_hex(),
            'heirPubkey': self.heir_key.get_x_only_hex(),
            'heirAddress': HEIR_ADDRESS,
            'amount': 100_000,
            'timeoutBlocks': 52_000,
            'inputUtxo': "aa" * 32 + ":0",
        }
        response = self.client.post('/api/vault/create', json=body)
        self.assertEqual(response.status_code, 200)
        result = response.get_json()
        self.assertTrue(result['success'])
        self.assertIn("action: Initialize", result['spell'])

        response = self.client.post('/api/vault/create', json=dict(body, inputUtxo="aa" * 32))
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()['error'], "Invalid UTXO format. Expected: txid:vout")

        response = self.client.post('/api/vault/create', json=dict(body, amount=-1))
        self.assertEqual(response.status_code, 400)

        usage = self.client.get('/api/vault/create').get_json()
        self.assertEqual(usage['method'], "POST")

    def test_derive_pubkey(self):
        response = self.client.post('/api/derive-pubkey', json={'address': OWNER_ADDRESS})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()['publicKey'], self.owner_key.get_x_only_hex())

        response = self.client.post('/api/derive-pubkey', json={'address': HEIR_ADDRESS})
        self.assertEqual(response.status_code, 400)
        self.assertIn("no transactions", response.get_json()['error'])

        self.assertEqual(self.client.post('/api/derive-pubkey', json={}).status_code, 400)

    def test_contract_and_unknown_routes(self):
        info = self.client.get('/api/contract').get_json()
        self.assertEqual(info['verification_key'], DEFAULT_APP_VK)
        self.assertEqual(self.client.get('/api/nothing-here').status_code, 404)


if __name__ == '__main__':
    unittest.main()
