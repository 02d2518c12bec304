"""
Prefect flows for the intake pipeline.

    polling_flow  - @flow: scheduled ManyReach reply polling under the poller lease
"""
