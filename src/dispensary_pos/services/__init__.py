"""Services subpackage - checkout sessions and the transaction journal."""
