import uuid


class IdGenerator:
    """
    Mints prefixed identifiers for codes, scans, sessions and invitations.

    The prefix keeps the namespaces apart (a QR code is ``conn_...``, an
    invitation token is ``invc_...``); uniqueness comes from uuid4 and is
    backed by unique constraints in the store.
    """

    def new_id(self, prefix: str) -> str:
        return f"{prefix}_{uuid.uuid4().hex}"

    def connection_code(self) -> str:
        return self.new_id("conn")

    def scan_id(self) -> str:
        return self.new_id("scan")

    def session_id(self) -> str:
        return self.new_id("sess")

    def invitation_id(self) -> str:
        return self.new_id("inv")

    def invitation_code(self) -> str:
        return self.new_id("invc")

    def row_id(self) -> str:
        return str(uuid.uuid4())
