"""Advanced report builder: report definitions compiled into queries, result matrices and exports."""
