"""Cache domain: keys, TTLs, envelopes and the key-value store contract."""
