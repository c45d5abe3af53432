#!/usr/bin/env python3
"""
Web interface for Legacy Guard vaults
"""

import atexit
import logging
import os

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from legacy_guard.charms.prover import CharmsCliProver
from legacy_guard.config import LegacyGuardConfig
from legacy_guard.deployment import contract_info
from legacy_guard.errors import InvalidInput, LegacyGuardError
from legacy_guard.history import BlockstreamHistoryProvider
from legacy_guard.service import VaultService
from legacy_guard.vault import ClaimRequest, VaultParams

log = logging.getLogger(__name__)


def _json_body() -> dict:
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise InvalidInput("Request body must be a JSON object")
    return body


def build_service(config: LegacyGuardConfig) -> VaultService:
    return VaultService(
        config=config,
        history_provider=BlockstreamHistoryProvider.from_config(config),
        prover=CharmsCliProver(config),
    )


def create_app(service: VaultService = None) -> Flask:
    app = Flask(__name__)

    if service is None:
        service = build_service(LegacyGuardConfig.from_env())
        service.start()
    app.config['VAULT_SERVICE'] = service

    @app.errorhandler(LegacyGuardError)
    def handle_vault_error(error):
        body = {'success': False, 'error': str(error)}
        errors = getattr(error, 'errors', None)
        if errors and len(errors) > 1:
            body['errors'] = errors
        return jsonify(body), error.status_code

    @app.errorhandler(Exception)
    def handle_unexpected(error):
        if isinstance(error, HTTPException):
            return error
        log.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify({'success': False, 'error': 'Internal server error'}), 500

    @app.route('/api/vaults', methods=['POST'])
    def create_vault():
        """Create a new vault entry"""
        vault = service.create_vault(VaultParams.from_request(_json_body()))
        return jsonify({'success': True, 'vault': vault.to_dict()}), 201

    @app.route('/api/vaults', methods=['GET'])
    def list_vaults():
        """Vaults claimable by a heir address, optionally filtered by status"""
        vaults = service.list_vaults(request.args.get('address'), request.args.get('status'))
        return jsonify({
            'success': True,
            'count': len(vaults),
            'vaults': [v.to_dict() for v in vaults],
        })

    @app.route('/api/vaults/<vault_id>')
    def get_vault(vault_id):
        vault = service.get_vault(vault_id)
        return jsonify({
            'success': True,
            'vault': vault.to_dict(),
            'remaining_milliseconds': service.remaining_milliseconds(vault),
        })

    @app.route('/api/vaults/<vault_id>/spell', methods=['POST'])
    def vault_spell(vault_id):
        """Render a Pulse or Claim spell spending the vault's current UTXO"""
        data = _json_body()
        vault_utxo = data.get('vaultUtxo')
        if not vault_utxo or not isinstance(vault_utxo, str):
            raise InvalidInput("Missing required field: vaultUtxo")

        spell = service.spell_for(vault_id, data.get('action'), vault_utxo)
        return jsonify({'success': True, 'action': data.get('action'), 'spell': spell})

    @app.route('/api/vaults/<vault_id>/claim', methods=['POST'])
    def claim_vault(vault_id):
        """Claim a vault on behalf of its heir"""
        vault = service.claim_vault(vault_id, ClaimRequest.from_request(_json_body()))
        return jsonify({
            'success': True,
            'message': 'Vault claimed successfully',
            'vault': vault.to_dict(),
        })

    @app.route('/api/vault/create', methods=['POST'])
    def create_vault_spell():
        """Generate the Initialize spell that locks funds in the contract"""
        data = _json_body()
        if not data.get('inputUtxo') or ':' not in str(data.get('inputUtxo')):
            raise InvalidInput("Invalid UTXO format. Expected: txid:vout")

        result = service.prepare_vault_spell(
            owner_pubkey=data.get('ownerPubkey'),
            heir_pubkey=data.get('heirPubkey'),
            heir_address=data.get('heirAddress'),
            amount_satoshis=data.get('amount'),
            timeout_blocks=data.get('timeoutBlocks'),
            input_utxo=data['inputUtxo'],
        )
        return jsonify(result), 200 if result['success'] else 400

    @app.route('/api/vault/create', methods=['GET'])
    def describe_vault_spell():
        return jsonify({
            'endpoint': '/api/vault/create',
            'method': 'POST',
            'description': 'Generate a Charms Initialize spell that creates an enchanted UTXO for vault storage',
            'body': {
                'ownerPubkey': 'string (64 hex characters)',
                'heirPubkey': 'string (64 hex characters)',
                'heirAddress': 'string (Bitcoin address)',
                'amount': 'number (amount in satoshis)',
                'timeoutBlocks': 'number (e.g., 52000 for ~1 year)',
                'inputUtxo': 'string (format: "txid:vout")',
            },
        })

    @app.route('/api/derive-pubkey', methods=['POST'])
    def derive_pubkey():
        """Recover a public key from the address's spending history"""
        address = _json_body().get('address')
        if not address or not isinstance(address, str):
            raise InvalidInput("Invalid address")
        return jsonify({'publicKey': service.derive_public_key(address)})

    @app.route('/api/contract')
    def get_contract():
        return jsonify(contract_info(service.config))

    return app


if __name__ == "__main__":
    logging.basicConfig(
        level=os.environ.get("LEGACY_GUARD_LOG_LEVEL", "INFO"),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    app = create_app()
    atexit.register(app.config['VAULT_SERVICE'].stop)

    port = int(os.environ.get("PORT", 10000))
    app.run(
        host="0.0.0.0",
        port=port,
        debug=False
    )
