import unittest
from legacy_guard.extractor import (
    InnerScriptStrategy,
    LegacyScriptStrategy,
    PublicKeyExtractor,
    WitnessListStrategy,
)

KEY_A = "79be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798"
KEY_B = "c6047f9441ed7d6d3045406e95c07cd85c778e4b8cef3ca7abac09b95c709ee5"
Y_A = "483ada7726a3c4655da4fbfc0e1108a8fd17b448a68554199c47d08ffb10d4b8"
SIGNATURE = "30440220" + "11" * 32 + "0220" + "22" * 32 + "01"


def tx(*inputs, txid="00" * 32):
    return {'txid': txid, 'vin': list(inputs)}


class TestStrategies(unittest.TestCase):

    def test_witness_list(self):
        strategy = WitnessListStrategy()
        self.assertEqual(strategy.extract({'witness': [SIGNATURE, "02" + KEY_A]}), KEY_A)
        self.assertEqual(strategy.extract({'witness': [KEY_B.upper()]}), KEY_B)
        self.assertIsNone(strategy.extract({'witness': [SIGNATURE]}))
        self.assertIsNone(strategy.extract({'witness': "02" + KEY_A}))
        self.assertIsNone(strategy.extract({}))

    def test_witness_skips_non_point_entries(self):
        """66-hex entries without a 02/03 prefix are not keys"""
        strategy = WitnessListStrategy()
        self.assertEqual(strategy.extract({'witness': ["51" + KEY_B, "03" + KEY_A]}), KEY_A)

    def test_inner_witness_script(self):
        strategy = InnerScriptStrategy()
        asm = f"OP_PUSHBYTES_32 {KEY_B} OP_CHECKSIG"
        self.assertEqual(strategy.extract({'inner_witnessscript_asm': asm}), KEY_B)

        asm = f"OP_PUSHBYTES_33 03{KEY_A} OP_CHECKSIG"
        self.assertEqual(strategy.extract({'inner_witnessscript_asm': asm}), KEY_A)

        # First match in text order wins
        asm = f"OP_IF 02{KEY_A} OP_ELSE {KEY_B} OP_ENDIF"
        self.assertEqual(strategy.extract({'inner_witnessscript_asm': asm}), KEY_A)

    def test_legacy_script_sig(self):
        strategy = LegacyScriptStrategy()
        asm = f"OP_PUSHBYTES_71 {SIGNATURE} OP_PUSHBYTES_33 02{KEY_A}"
        self.assertEqual(strategy.extract({'scriptsig_asm': asm}), KEY_A)

        asm = f"OP_PUSHBYTES_71 {SIGNATURE} OP_PUSHBYTES_65 04{KEY_A}{Y_A}"
        self.assertEqual(strategy.extract({'scriptsig_asm': asm}), KEY_A)

        self.assertIsNone(strategy.extract({'scriptsig_asm': f"OP_PUSHBYTES_71 {SIGNATURE}"}))
        self.assertIsNone(strategy.extract({'scriptsig_asm': ""}))


class TestPublicKeyExtractor(unittest.TestCase):

    def setUp(self):
        self.extractor = PublicKeyExtractor()

    def test_witness_has_priority_over_inner_script(self):
        tx_input = {
            'witness': ["02" + KEY_A],
            'inner_witnessscript_asm': f"OP_PUSHBYTES_32 {KEY_B} OP_CHECKSIG",
        }
        self.assertEqual(self.extractor.extract(tx_input), KEY_A)

    def test_inner_script_has_priority_over_legacy(self):
        tx_input = {
            'inner_witnessscript_asm': f"{KEY_B} OP_CHECKSIG",
            'scriptsig_asm': f"{SIGNATURE} 02{KEY_A}",
        }
        self.assertEqual(self.extractor.extract(tx_input), KEY_B)

    def test_falls_through_to_later_strategies(self):
        tx_input = {
            'witness': [SIGNATURE],
            'scriptsig_asm': f"{SIGNATURE} 03{KEY_A}",
        }
        self.assertEqual(self.extractor.extract(tx_input), KEY_A)

    def test_not_found(self):
        self.assertIsNone(self.extractor.extract({'witness': [], 'scriptsig_asm': ""}))
        self.assertIsNone(self.extractor.extract("not an input"))

    def test_transaction_scan_order(self):
        """Transactions first, then inputs, in order"""
        transactions = [
            tx({'witness': [SIGNATURE]}, {'witness': [SIGNATURE, "02" + KEY_B]}),
            tx({'witness': [SIGNATURE, "02" + KEY_A]}),
        ]
        self.assertEqual(self.extractor.find_in_transactions(transactions), KEY_B)

    def test_scan_is_bounded(self):
        empty = [tx({'witness': [SIGNATURE]}) for _ in range(20)]
        revealing = tx({'witness': [SIGNATURE, "02" + KEY_A]})

        self.assertIsNone(self.extractor.find_in_transactions(empty + [revealing]))
        self.assertEqual(self.extractor.find_in_transactions(empty[:19] + [revealing]), KEY_A)
        self.assertEqual(self.extractor.find_in_transactions(empty + [revealing], limit=21), KEY_A)

    def test_malformed_transactions_are_skipped(self):
        transactions = [{'txid': 'x'}, {'vin': None}, "garbage", tx({'witness': [KEY_A]})]
        self.assertEqual(self.extractor.find_in_transactions(transactions), KEY_A)


if __name__ == '__main__':
    unittest.main()
