"""GraphQL documents sent to the proof indexer."""

PROOF_RECORD_FIELDS = """
      nullifier
      threshold
      timestamp
      expiresAt
      userDID
      isValid
      isExpired
"""

GET_PROOF_BY_NULLIFIER = f"""
  query GetProofByNullifier($nullifier: String!) {{
    proofRecord(nullifier: $nullifier) {{{PROOF_RECORD_FIELDS}    }}
  }}
"""

GET_PROOFS_BY_USER = f"""
  query GetProofsByUser($userDID: String!) {{
    proofRecords(where: {{ userDID: $userDID }}) {{{PROOF_RECORD_FIELDS}    }}
  }}
"""

GET_PROOFS_WITH_FILTERS = f"""
  query GetProofsWithFilters($userDID: String, $minThreshold: Int, $isValid: Boolean) {{
    proofRecords(
      where: {{ userDID: $userDID, threshold_gte: $minThreshold, isValid: $isValid }}
    ) {{{PROOF_RECORD_FIELDS}    }}
  }}
"""

GET_ALL_PROOFS = f"""
  query GetAllProofs($limit: Int, $offset: Int) {{
    proofRecords(limit: $limit, offset: $offset) {{{PROOF_RECORD_FIELDS}    }}
  }}
"""
